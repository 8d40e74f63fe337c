"""Registry clients that supply published gem versions to the resolver."""

from .base import GemVersion, PackageNotFound, RegistryClient, RegistryError, RegistryUnavailable

__all__ = [
    "GemVersion",
    "PackageNotFound",
    "RegistryClient",
    "RegistryError",
    "RegistryUnavailable",
]
