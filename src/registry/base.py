"""Registry client contract consumed by the resolver."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

from versioning.models import RequirementSet, Version


class RegistryError(Exception):
    """Base class for registry failures."""

    def __init__(self, message: str, package: str):
        super().__init__(message)
        self.package = package


class RegistryUnavailable(RegistryError):
    """The registry could not be reached; callers may retry."""

    def __init__(self, package: str, reason: str = "registry unavailable"):
        super().__init__(f"Registry unavailable while fetching '{package}': {reason}", package)
        self.reason = reason


class PackageNotFound(RegistryError):
    """The registry has no gem with this name."""

    def __init__(self, package: str):
        super().__init__(f"Gem '{package}' not found in registry", package)


@dataclass
class GemVersion:
    """One published (version, platform) variant and its runtime dependencies."""

    version: Version
    platform: Optional[str] = None
    dependencies: RequirementSet = field(default_factory=RequirementSet)
    checksum: Optional[str] = None
    ruby_requirement: Optional[str] = None

    @property
    def is_generic(self) -> bool:
        """True for the platform-neutral variant."""
        return self.platform is None or self.platform == "ruby"

    @property
    def full_name(self) -> str:
        """Version string with the platform suffix, as written in lockfiles."""
        if self.is_generic:
            return str(self.version)
        return f"{self.version}-{self.platform}"


def sort_newest_first(versions: List[GemVersion]) -> List[GemVersion]:
    """Order variants newest first; within a version the generic variant leads."""
    ordered = sorted(versions, key=lambda v: (not v.is_generic, v.platform or ""))
    return sorted(ordered, key=lambda v: v.version, reverse=True)


class RegistryClient(ABC):
    """Source of published gem versions.

    Implementations must be safe to call concurrently for different gem
    names. ``fetch_versions`` returns variants sorted newest first.
    """

    @abstractmethod
    async def fetch_versions(self, name: str) -> List[GemVersion]:
        """Return every published variant of ``name``.

        Raises:
            PackageNotFound: the gem does not exist.
            RegistryUnavailable: transient failure (network, timeout, 5xx).
        """

    async def close(self) -> None:
        """Release network resources; no-op by default."""
