"""In-memory dependency graph built while resolving.

The graph records, for every gem name, the incoming requirement edges and
the tentative assignment. Every mutation is journaled so the resolver can
return to any earlier decision point with ``rollback(mark)``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from lockfile.model import REGISTRY_SOURCE, SourceRef
from versioning.models import Requirement, RequirementSet, Version

from .models import Requirer


@dataclass(frozen=True)
class Edge:
    """A requirement on a gem, introduced by ``requirer`` (None = manifest)."""

    requirer: Optional[str]
    requirer_version: Optional[str]
    requirement: Requirement


@dataclass(frozen=True)
class Assignment:
    """A gem fixed to one version (and platform variant) during the search."""

    name: str
    version: Version
    platform: Optional[str] = None
    source: SourceRef = REGISTRY_SOURCE
    dependencies: RequirementSet = field(default_factory=RequirementSet, compare=False)
    checksum: Optional[str] = field(default=None, compare=False)


class DependencyGraph:
    """Requirement edges and assignments with an undo journal."""

    def __init__(self) -> None:
        self._edges: Dict[str, List[Edge]] = {}
        self._assigned: Dict[str, Assignment] = {}
        self._journal: List[Tuple[str, str]] = []

    def checkpoint(self) -> int:
        """Mark the current state; pass the mark to ``rollback``."""
        return len(self._journal)

    def rollback(self, mark: int) -> None:
        """Undo every mutation made after ``mark``."""
        while len(self._journal) > mark:
            action, name = self._journal.pop()
            if action == "edge":
                edges = self._edges[name]
                edges.pop()
                if not edges:
                    del self._edges[name]
            else:
                del self._assigned[name]

    def add_edge(self, name: str, edge: Edge) -> None:
        self._edges.setdefault(name, []).append(edge)
        self._journal.append(("edge", name))

    def assign(self, assignment: Assignment) -> None:
        if assignment.name in self._assigned:
            raise ValueError(f"'{assignment.name}' is already assigned")
        self._assigned[assignment.name] = assignment
        self._journal.append(("assign", assignment.name))

    def edges(self, name: str) -> List[Edge]:
        return list(self._edges.get(name, ()))

    def requirement_for(self, name: str) -> Requirement:
        """Conjunction of every edge pointing at ``name``."""
        merged = Requirement.any()
        for edge in self._edges.get(name, ()):
            merged = merged.merge(edge.requirement)
        return merged

    def requirements(self) -> RequirementSet:
        """Snapshot of the merged requirement for every required name."""
        return RequirementSet({name: self.requirement_for(name) for name in self._edges})

    def is_assigned(self, name: str) -> bool:
        return name in self._assigned

    def assignment(self, name: str) -> Optional[Assignment]:
        return self._assigned.get(name)

    def assignments(self) -> List[Assignment]:
        return [self._assigned[name] for name in sorted(self._assigned)]

    def pending(self) -> List[str]:
        """Required names without an assignment, sorted."""
        return sorted(name for name in self._edges if name not in self._assigned)

    def violations(self) -> List[str]:
        """Assigned names whose version no longer meets their requirement."""
        return [
            name
            for name, assignment in sorted(self._assigned.items())
            if not self.requirement_for(name).satisfied_by(assignment.version)
        ]

    def path_to(self, name: Optional[str]) -> Tuple[str, ...]:
        """Chain of ``name version`` labels from the manifest down to ``name``.

        Follows the first recorded edge at every step; cycles stop the walk.
        """
        chain: List[str] = []
        seen = set()
        current = name
        while current is not None and current not in seen:
            seen.add(current)
            assignment = self._assigned.get(current)
            chain.append(f"{current} ({assignment.version})" if assignment else current)
            edges = self._edges.get(current)
            current = edges[0].requirer if edges else None
        chain.reverse()
        return tuple(chain[:-1])

    def requirers(self, name: str) -> List[Requirer]:
        """Diagnostic view of the edges pointing at ``name``."""
        return [
            Requirer(
                name=edge.requirer,
                version=edge.requirer_version,
                requirement=str(edge.requirement),
                path=self.path_to(edge.requirer) if edge.requirer is not None else (),
            )
            for edge in self._edges.get(name, ())
        ]
