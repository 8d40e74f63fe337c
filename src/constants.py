"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    CONNECTION_ERROR = 2
    RESOLUTION_ERROR = 4
    LOCKFILE_ERROR = 5


class LockfileSections:  # pylint: disable=too-few-public-methods
    """Section headers of the lockfile format."""

    GIT = "GIT"
    PATH = "PATH"
    GEM = "GEM"
    PLATFORMS = "PLATFORMS"
    DEPENDENCIES = "DEPENDENCIES"
    CHECKSUMS = "CHECKSUMS"
    RUBY_VERSION = "RUBY VERSION"
    BUNDLED_WITH = "BUNDLED WITH"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    REGISTRY_URL_RUBYGEMS = "https://rubygems.org"
    COMPACT_INDEX_INFO_PATH = "/info/"
    USER_AGENT = "gemlock/0.1"
    GENERIC_PLATFORM = "ruby"
    DEFAULT_REQUIREMENT = ">= 0"
    LOCKFILE_NAME = "Gemfile.lock"
    MANIFEST_NAME = "gems.yml"
    BUNDLED_WITH = "2.5.3"
    LOG_FORMAT = "[%(levelname)s] %(message)s"
    LOG_LEVEL_ENV = "GEMLOCK_LOG_LEVEL"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests
    HTTP_RETRY_MAX = 3
    HTTP_RETRY_BASE_DELAY_SEC = 0.3
    REGISTRY_MAX_CONCURRENCY = 16
    RESOLVER_MAX_STEPS = 100000

    CONFIG_FILE_NAMES = ["gemlock.yml", "gemlock.yaml", "gemlock.json"]
    USER_CONFIG_PATH = "~/.config/gemlock/config.yml"
    ENV_REGISTRY_URL = "GEMLOCK_REGISTRY_URL"
    ENV_REQUEST_TIMEOUT = "GEMLOCK_REQUEST_TIMEOUT"
    ENV_MAX_CONCURRENCY = "GEMLOCK_MAX_CONCURRENCY"
