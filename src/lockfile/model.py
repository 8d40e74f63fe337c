"""Data model for a resolved dependency set as persisted in a lockfile."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from constants import Constants


class SourceKind(Enum):
    """Where a locked gem comes from."""

    REGISTRY = "registry"
    GIT = "git"
    PATH = "path"

    @property
    def order(self) -> int:
        """Position used when breaking sort ties between source kinds."""
        return list(SourceKind).index(self)


@dataclass(frozen=True)
class SourceRef:
    """Source details of a locked gem.

    ``location`` is the git remote or local directory for pinned sources and
    None for registry gems. ``revision``/``branch``/``tag`` only apply to git.
    """

    kind: SourceKind = SourceKind.REGISTRY
    location: Optional[str] = None
    revision: Optional[str] = None
    branch: Optional[str] = None
    tag: Optional[str] = None

    @property
    def pinned(self) -> bool:
        return self.kind is not SourceKind.REGISTRY

    def group_key(self) -> Tuple[str, str, str, str, str]:
        """Key grouping entries that share one GIT or PATH section."""
        return (
            self.kind.value,
            self.location or "",
            self.revision or "",
            self.branch or "",
            self.tag or "",
        )


REGISTRY_SOURCE = SourceRef()


@dataclass(frozen=True)
class Dependency:
    """Edge from a locked gem to a gem it needs, with the requirement it declares."""

    name: str
    requirement: str = Constants.DEFAULT_REQUIREMENT

    def __post_init__(self):
        req = (self.requirement or "").strip()
        object.__setattr__(self, "requirement", req or Constants.DEFAULT_REQUIREMENT)

    @property
    def is_unconstrained(self) -> bool:
        return self.requirement == Constants.DEFAULT_REQUIREMENT


@dataclass(frozen=True)
class ResolvedEntry:
    """One locked gem: name, exact version, optional platform and its edges."""

    name: str
    version: str
    platform: Optional[str] = None
    source: SourceRef = REGISTRY_SOURCE
    dependencies: Tuple[Dependency, ...] = ()
    checksum: Optional[str] = field(default=None, compare=False)

    def __post_init__(self):
        if self.platform == Constants.GENERIC_PLATFORM:
            object.__setattr__(self, "platform", None)
        deps = tuple(sorted(set(self.dependencies), key=lambda d: (d.name, d.requirement)))
        object.__setattr__(self, "dependencies", deps)

    @property
    def full_version(self) -> str:
        """Version with the platform suffix (``1.14.0-arm64-darwin``)."""
        if self.platform:
            return f"{self.version}-{self.platform}"
        return self.version

    @property
    def full_name(self) -> str:
        return f"{self.name}-{self.full_version}"

    @property
    def dependency_names(self) -> List[str]:
        return [d.name for d in self.dependencies]

    def sort_key(self) -> Tuple[str, str, int]:
        return (self.name, self.platform or "", self.source.kind.order)


@dataclass(frozen=True)
class DirectRequirement:
    """A manifest entry as recorded in DEPENDENCIES; ``requirement`` is kept verbatim."""

    name: str
    requirement: Optional[str] = None

    def __post_init__(self):
        req = (self.requirement or "").strip()
        object.__setattr__(self, "requirement", req or None)


@dataclass(frozen=True)
class Resolution:
    """Complete lockfile content.

    Entries, platforms and direct requirements are stored in canonical order,
    so two resolutions holding the same content compare equal regardless of
    the order they were built in.
    """

    entries: Tuple[ResolvedEntry, ...] = ()
    platforms: Tuple[str, ...] = ()
    direct: Tuple[DirectRequirement, ...] = ()
    ruby_version: Optional[str] = None
    bundled_with: Optional[str] = None
    remote: Optional[str] = field(default=None, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "entries", tuple(sorted(self.entries, key=ResolvedEntry.sort_key)))
        object.__setattr__(self, "platforms", tuple(sorted(set(self.platforms))))
        object.__setattr__(self, "direct", tuple(sorted(set(self.direct), key=lambda d: (d.name, d.requirement or ""))))

    @classmethod
    def empty(cls) -> "Resolution":
        return cls()

    @property
    def is_empty(self) -> bool:
        return not (self.entries or self.platforms or self.direct or self.ruby_version or self.bundled_with)

    def names(self) -> List[str]:
        """Distinct gem names in canonical order."""
        seen: Dict[str, None] = {}
        for entry in self.entries:
            seen.setdefault(entry.name, None)
        return list(seen)

    def direct_names(self) -> List[str]:
        return [d.name for d in self.direct]

    def find(self, name: str, platform: Optional[str] = None) -> Optional[ResolvedEntry]:
        """Return the entry for ``name``; prefers ``platform`` when several variants are locked."""
        candidates = [e for e in self.entries if e.name == name]
        if not candidates:
            return None
        if platform is not None:
            for entry in candidates:
                if entry.platform == platform:
                    return entry
        for entry in candidates:
            if entry.platform is None:
                return entry
        return candidates[0]

    def by_source(self, kind: SourceKind) -> List[ResolvedEntry]:
        return [e for e in self.entries if e.source.kind is kind]

    def validate(self) -> List[str]:
        """Return invariant violations: dangling edges and duplicate assignments."""
        problems: List[str] = []
        names = set(self.names())
        seen = set()
        for entry in self.entries:
            key = (entry.name, entry.platform)
            if key in seen:
                problems.append(f"duplicate entry for {entry.full_name}")
            seen.add(key)
            for dep in entry.dependencies:
                if dep.name not in names:
                    problems.append(f"{entry.full_name} depends on {dep.name}, which is not locked")
        for req in self.direct:
            if req.name not in names:
                problems.append(f"direct dependency {req.name} is not locked")
        return problems

    def to_dict(self) -> Dict[str, object]:
        """Plain-data view for JSON export."""
        return {
            "entries": [
                {
                    "name": e.name,
                    "version": e.version,
                    "platform": e.platform,
                    "source": e.source.kind.value,
                    "location": e.source.location,
                    "dependencies": {d.name: d.requirement for d in e.dependencies},
                }
                for e in self.entries
            ],
            "platforms": list(self.platforms),
            "dependencies": {d.name: d.requirement for d in self.direct},
            "ruby_version": self.ruby_version,
            "bundled_with": self.bundled_with,
        }
