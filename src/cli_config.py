"""Runtime configuration: config file, environment and CLI overrides.

Precedence, lowest to highest: built-in ``Constants`` defaults, the config
file (explicit ``--config``, else ``./gemlock.yml``, else the user config),
``GEMLOCK_*`` environment variables, CLI flags. Each layer updates
``Constants`` in place.

Config file layout (YAML or JSON)::

    registry:
      url: https://rubygems.org
      timeout: 30
      max_concurrency: 16
      retries: 3
    resolver:
      max_steps: 100000
    lockfile:
      name: Gemfile.lock
      bundled_with: 2.5.3
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Mapping, Optional

import yaml

from constants import Constants

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """The config file exists but cannot be decoded."""


def _default_paths():
    paths = list(Constants.CONFIG_FILE_NAMES)
    paths.append(os.path.expanduser(Constants.USER_CONFIG_PATH))
    return paths


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load the config mapping.

    An explicit ``path`` must exist; otherwise the first default location
    that exists is used, and no file at all yields an empty mapping.

    Raises:
        OSError: explicit path cannot be read.
        ConfigError: the file content is not a YAML/JSON mapping.
    """
    if path:
        candidates = [path]
    else:
        candidates = [p for p in _default_paths() if os.path.isfile(p)]
        if not candidates:
            return {}
    chosen = candidates[0]
    with open(chosen, "r", encoding="utf-8") as fh:
        try:
            if chosen.lower().endswith(".json"):
                data = json.load(fh)
            else:
                data = yaml.safe_load(fh)
        except (json.JSONDecodeError, yaml.YAMLError) as exc:
            raise ConfigError(f"{chosen}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{chosen}: top level must be a mapping")
    logger.debug("Loaded config from %s", chosen)
    return data


def _section(cfg: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = cfg.get(name)
    return value if isinstance(value, Mapping) else {}


def _positive_int(value: Any, label: str) -> Optional[int]:
    try:
        number = int(value)
    except (TypeError, ValueError):
        logger.warning("Ignoring non-integer %s: %r", label, value)
        return None
    if number <= 0:
        logger.warning("Ignoring non-positive %s: %r", label, value)
        return None
    return number


def apply_config_overrides(cfg: Mapping[str, Any]) -> None:
    """Copy recognized config values onto ``Constants``; unknown keys are ignored."""
    registry = _section(cfg, "registry")
    if registry.get("url"):
        Constants.REGISTRY_URL_RUBYGEMS = str(registry["url"]).rstrip("/")
    if registry.get("timeout") is not None:
        value = _positive_int(registry["timeout"], "registry.timeout")
        if value is not None:
            Constants.REQUEST_TIMEOUT = value
    if registry.get("max_concurrency") is not None:
        value = _positive_int(registry["max_concurrency"], "registry.max_concurrency")
        if value is not None:
            Constants.REGISTRY_MAX_CONCURRENCY = value
    if registry.get("retries") is not None:
        value = _positive_int(registry["retries"], "registry.retries")
        if value is not None:
            Constants.HTTP_RETRY_MAX = value

    resolver = _section(cfg, "resolver")
    if resolver.get("max_steps") is not None:
        value = _positive_int(resolver["max_steps"], "resolver.max_steps")
        if value is not None:
            Constants.RESOLVER_MAX_STEPS = value

    lockfile = _section(cfg, "lockfile")
    if lockfile.get("name"):
        Constants.LOCKFILE_NAME = str(lockfile["name"])
    if lockfile.get("bundled_with"):
        Constants.BUNDLED_WITH = str(lockfile["bundled_with"])


def apply_env_overrides(environ: Optional[Mapping[str, str]] = None) -> None:
    """Apply ``GEMLOCK_*`` environment variables onto ``Constants``."""
    env = os.environ if environ is None else environ
    url = env.get(Constants.ENV_REGISTRY_URL, "").strip()
    if url:
        Constants.REGISTRY_URL_RUBYGEMS = url.rstrip("/")
    timeout = env.get(Constants.ENV_REQUEST_TIMEOUT, "").strip()
    if timeout:
        value = _positive_int(timeout, Constants.ENV_REQUEST_TIMEOUT)
        if value is not None:
            Constants.REQUEST_TIMEOUT = value
    concurrency = env.get(Constants.ENV_MAX_CONCURRENCY, "").strip()
    if concurrency:
        value = _positive_int(concurrency, Constants.ENV_MAX_CONCURRENCY)
        if value is not None:
            Constants.REGISTRY_MAX_CONCURRENCY = value


def apply_cli_overrides(args) -> None:
    """Apply CLI flags; these have the highest precedence."""
    if getattr(args, "REGISTRY_URL", None):
        Constants.REGISTRY_URL_RUBYGEMS = args.REGISTRY_URL.rstrip("/")
    if getattr(args, "TIMEOUT", None) is not None:
        Constants.REQUEST_TIMEOUT = int(args.TIMEOUT)
    if getattr(args, "MAX_STEPS", None) is not None:
        Constants.RESOLVER_MAX_STEPS = int(args.MAX_STEPS)
