"""Resolver inputs (manifest, pinned refs) and failure diagnostics."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from lockfile.model import REGISTRY_SOURCE, SourceKind, SourceRef
from versioning.models import Requirement, RequirementSet, Version


@dataclass(frozen=True)
class PackageRef:
    """A gem plus where it comes from.

    Registry refs are resolved by constraint; git and path refs are pinned to
    ``version`` and declare their own ``dependencies`` (name -> requirement).
    """

    name: str
    source: SourceRef = REGISTRY_SOURCE
    version: Optional[str] = None
    dependencies: Tuple[Tuple[str, str], ...] = ()

    def __post_init__(self):
        if self.source.pinned:
            if not self.version:
                raise ValueError(f"{self.source.kind.value} gem '{self.name}' needs a fixed version")
            Version(self.version)
        if self.source.pinned and not self.source.location:
            raise ValueError(f"{self.source.kind.value} gem '{self.name}' needs a location")

    @property
    def pinned(self) -> bool:
        return self.source.pinned

    @classmethod
    def git(
        cls,
        name: str,
        version: str,
        url: str,
        revision: Optional[str] = None,
        branch: Optional[str] = None,
        tag: Optional[str] = None,
        dependencies: Optional[Mapping[str, str]] = None,
    ) -> "PackageRef":
        source = SourceRef(SourceKind.GIT, url, revision, branch, tag)
        return cls(name, source, version, tuple(sorted((dependencies or {}).items())))

    @classmethod
    def path(
        cls,
        name: str,
        version: str,
        directory: str,
        dependencies: Optional[Mapping[str, str]] = None,
    ) -> "PackageRef":
        source = SourceRef(SourceKind.PATH, directory)
        return cls(name, source, version, tuple(sorted((dependencies or {}).items())))

    def requirements(self) -> RequirementSet:
        """Declared dependencies of a pinned gem."""
        return RequirementSet({n: r for n, r in self.dependencies})


@dataclass(frozen=True)
class ManifestEntry:
    """One requested gem: name, optional requirement text, optional source override."""

    name: str
    requirement: Optional[str] = None
    ref: Optional[PackageRef] = None

    def __post_init__(self):
        Requirement.parse(self.requirement)
        if self.ref is not None and self.ref.name != self.name:
            raise ValueError(f"source override for '{self.ref.name}' attached to '{self.name}'")


@dataclass
class Manifest:
    """Direct requirements of a project."""

    entries: List[ManifestEntry] = field(default_factory=list)
    ruby_version: Optional[str] = None

    @classmethod
    def from_mapping(cls, requirements: Mapping[str, Optional[str]], pins: Sequence[PackageRef] = ()) -> "Manifest":
        """Build a manifest from ``{name: requirement}`` plus pinned refs."""
        entries = [ManifestEntry(name, req) for name, req in requirements.items()]
        known = {e.name for e in entries}
        for ref in pins:
            if ref.name in known:
                entries = [ManifestEntry(e.name, e.requirement, ref) if e.name == ref.name else e for e in entries]
            else:
                entries.append(ManifestEntry(ref.name, None, ref))
        return cls(entries)

    def requirements(self) -> RequirementSet:
        result = RequirementSet()
        for entry in self.entries:
            result.add(entry.name, entry.requirement)
        return result

    def pinned_refs(self) -> List[PackageRef]:
        """Pinned refs in manifest order, one per name (the first one wins)."""
        seen: Dict[str, PackageRef] = {}
        for entry in self.entries:
            if entry.ref is not None and entry.ref.pinned:
                seen.setdefault(entry.name, entry.ref)
        return list(seen.values())

    def __len__(self) -> int:
        return len(self.entries)


@dataclass(frozen=True)
class Requirer:
    """Who introduced a requirement; ``name`` None means the manifest."""

    name: Optional[str]
    version: Optional[str]
    requirement: str
    path: Tuple[str, ...] = ()

    @property
    def label(self) -> str:
        if self.name is None:
            return "manifest"
        return f"{self.name} ({self.version})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "requirer": self.name,
            "version": self.version,
            "requirement": self.requirement,
            "path": list(self.path),
        }


@dataclass
class ConflictDetail:
    """Why one gem could not be assigned."""

    package: str
    reason: str
    requirers: List[Requirer] = field(default_factory=list)

    def merge(self, other: "ConflictDetail") -> None:
        for requirer in other.requirers:
            if requirer not in self.requirers:
                self.requirers.append(requirer)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "package": self.package,
            "reason": self.reason,
            "requirers": [r.to_dict() for r in self.requirers],
        }


@dataclass
class ConflictReport:
    """Structured account of a failed resolution."""

    conflicts: List[ConflictDetail] = field(default_factory=list)
    pinned: bool = False
    step_limit_reached: bool = False

    @property
    def packages(self) -> List[str]:
        return [c.package for c in self.conflicts]

    def detail(self, package: str) -> Optional[ConflictDetail]:
        for conflict in self.conflicts:
            if conflict.package == package:
                return conflict
        return None

    def add(self, detail: ConflictDetail) -> None:
        existing = self.detail(detail.package)
        if existing is None:
            self.conflicts.append(detail)
        else:
            existing.merge(detail)

    def explain(self) -> str:
        """Human-readable message built from the recorded chains."""
        if self.step_limit_reached:
            head = "Resolution gave up after reaching the step limit"
        elif self.pinned:
            head = "A pinned gem conflicts with the requirements placed on it"
        else:
            head = "Could not find compatible versions"
        lines = [head]
        for conflict in self.conflicts:
            lines.append(f"  {conflict.package}: {conflict.reason}")
            for requirer in conflict.requirers:
                chain = " -> ".join(requirer.path + (requirer.label,)) if requirer.path else requirer.label
                lines.append(f"    {chain} requires {conflict.package} ({requirer.requirement})")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pinned": self.pinned,
            "step_limit_reached": self.step_limit_reached,
            "conflicts": [c.to_dict() for c in self.conflicts],
        }


class ResolverError(Exception):
    """Base class for resolver failures."""


class ResolutionConflict(ResolverError):
    """Every alternative was exhausted; carries the ConflictReport."""

    def __init__(self, report: ConflictReport):
        super().__init__(report.explain())
        self.report = report


class PinnedVersionConflict(ResolutionConflict):
    """A git or path pin violates the requirements placed on it (not backtrackable)."""
