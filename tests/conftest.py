"""Shared fixtures: an in-memory registry for resolver tests."""

import asyncio
from typing import Dict, List, Optional

import pytest

from constants import Constants
from registry.base import GemVersion, PackageNotFound, RegistryClient, RegistryUnavailable, sort_newest_first
from versioning.models import RequirementSet, Version


def gem(version: str, deps: Optional[Dict[str, str]] = None, platform: Optional[str] = None,
        checksum: Optional[str] = None) -> GemVersion:
    """Build a GemVersion from plain strings."""
    return GemVersion(
        version=Version(version),
        platform=platform,
        dependencies=RequirementSet(deps or {}),
        checksum=checksum,
    )


class FakeRegistry(RegistryClient):
    """RegistryClient serving versions from a dict and recording every call."""

    def __init__(self, index: Optional[Dict[str, List[GemVersion]]] = None,
                 unavailable: Optional[set] = None, delay: float = 0.0):
        self.index = {name: sort_newest_first(list(v)) for name, v in (index or {}).items()}
        self.unavailable = set(unavailable or ())
        self.delay = delay
        self.calls: List[str] = []
        self.base_url = "https://rubygems.org"

    def add(self, name: str, *versions: GemVersion) -> "FakeRegistry":
        self.index[name] = sort_newest_first(self.index.get(name, []) + list(versions))
        return self

    async def fetch_versions(self, name: str) -> List[GemVersion]:
        self.calls.append(name)
        if self.delay:
            await asyncio.sleep(self.delay)
        if name in self.unavailable:
            raise RegistryUnavailable(name, "HTTP 503")
        if name not in self.index:
            raise PackageNotFound(name)
        return list(self.index[name])

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


@pytest.fixture
def fake_registry():
    """Empty FakeRegistry; tests populate it with ``add``."""
    return FakeRegistry()


@pytest.fixture
def restore_constants():
    """Undo any runtime overrides applied to Constants during a test."""
    saved = {k: v for k, v in vars(Constants).items() if k.isupper()}
    yield Constants
    for key, value in saved.items():
        setattr(Constants, key, value)
