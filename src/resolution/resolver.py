"""Backtracking dependency resolver.

The search makes one decision per gem name, trying candidates newest first.
Decisions live on an explicit stack of frames rather than the Python call
stack; each frame remembers the graph checkpoint taken before its current
candidate so the graph can be rolled back when the frame moves on.

Next-name choice is most-constrained-first: among the unassigned names the
one with the fewest viable candidates is decided next (ties by name), which
also makes gems with no viable candidate fail as early as possible.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional, Set, Tuple

from common.logging_utils import Timer, extra_context, is_debug_enabled
from constants import Constants
from lockfile.model import Dependency, DirectRequirement, Resolution, ResolvedEntry, SourceKind
from registry.base import GemVersion, PackageNotFound, RegistryClient
from versioning.models import Version

from .fetcher import CoalescingFetcher
from .graph import Assignment, DependencyGraph, Edge
from .models import (
    ConflictDetail,
    ConflictReport,
    Manifest,
    PackageRef,
    PinnedVersionConflict,
    Requirer,
    ResolutionConflict,
)
from .platforms import is_generic, select_variant

logger = logging.getLogger(__name__)


@dataclass
class _Frame:
    """A decision point: the gem being decided and its untried candidates."""

    name: str
    remaining: Deque[GemVersion]
    considered: int = 0
    mark: Optional[int] = None
    chosen: Optional[GemVersion] = None


@dataclass
class _Stats:
    steps: int = 0
    backtracks: int = 0
    platform_skips: int = 0
    not_found: Set[str] = field(default_factory=set)


class Resolver:
    """Turns a manifest into a Resolution using a RegistryClient."""

    def __init__(
        self,
        client: RegistryClient,
        platform: Optional[str] = None,
        allow_prerelease: bool = False,
        max_steps: Optional[int] = None,
        bundled_with: Optional[str] = None,
    ):
        """Create a resolver.

        Args:
            client: Source of published versions.
            platform: Target platform tag; None resolves platform-neutral variants only.
            allow_prerelease: Consider prerelease versions for every gem.
            max_steps: Candidate attempts allowed before giving up.
            bundled_with: Tool-version marker written to the lockfile.
        """
        self.client = client
        self.platform = None if is_generic(platform) else platform
        self.allow_prerelease = allow_prerelease
        self.max_steps = Constants.RESOLVER_MAX_STEPS if max_steps is None else max_steps
        self.bundled_with = bundled_with or Constants.BUNDLED_WITH

    async def resolve(self, manifest: Manifest) -> Resolution:
        """Resolve ``manifest``.

        Raises:
            ResolutionConflict: no consistent assignment exists.
            PinnedVersionConflict: a git/path pin violates its requirements.
            RegistryUnavailable: the registry failed; the whole run is aborted.
        """
        run = _ResolutionRun(self, manifest)
        with Timer() as t:
            try:
                resolution = await run.execute()
            finally:
                await run.fetcher.close()
        logger.info(
            "Resolved %d gems in %.0f ms (%d steps, %d backtracks, %d registry fetches)",
            len(resolution.entries),
            t.duration_ms(),
            run.stats.steps,
            run.stats.backtracks,
            run.fetcher.network_calls,
        )
        return resolution

    def resolve_sync(self, manifest: Manifest) -> Resolution:
        """Blocking wrapper around ``resolve``."""
        return asyncio.run(self.resolve(manifest))


class _ResolutionRun:
    """State of one resolution; never shared between runs."""

    def __init__(self, resolver: Resolver, manifest: Manifest):
        self.resolver = resolver
        self.manifest = manifest
        self.graph = DependencyGraph()
        self.fetcher = CoalescingFetcher(resolver.client)
        self.stack: List[_Frame] = []
        self.report = ConflictReport()
        self.stats = _Stats()

    async def execute(self) -> Resolution:
        self._seed()
        while True:
            selected = await self._select_next()
            if selected is None:
                return self._build()
            name, candidates = selected
            self.stack.append(_Frame(name, deque(candidates), considered=len(candidates)))
            while not self._advance(self.stack[-1]):
                exhausted = self.stack.pop()
                self._record_exhausted(exhausted)
                if not self.stack:
                    raise ResolutionConflict(self.report)
                self.stats.backtracks += 1
                if is_debug_enabled(logger):
                    logger.debug(
                        "Backtracking",
                        extra=extra_context(
                            event="backtrack",
                            component="resolver",
                            package=exhausted.name,
                            target=self.stack[-1].name,
                        ),
                    )

    def _seed(self) -> None:
        """Record direct requirements and assign every pinned ref."""
        for name, requirement in self.manifest.requirements().items():
            self.graph.add_edge(name, Edge(None, None, requirement))
        pins = self.manifest.pinned_refs()
        for ref in pins:
            self.graph.assign(self._assignment_for_ref(ref))
        for ref in pins:
            for dep_name, requirement in ref.requirements().items():
                if dep_name != ref.name:
                    self.graph.add_edge(dep_name, Edge(ref.name, ref.version, requirement))
        for ref in pins:
            requirement = self.graph.requirement_for(ref.name)
            if not requirement.satisfied_by(Version(ref.version or "0")):
                report = ConflictReport(pinned=True)
                report.add(
                    ConflictDetail(
                        package=ref.name,
                        reason=(
                            f"{ref.source.kind.value} source pins version {ref.version}, "
                            f"which does not satisfy {requirement}"
                        ),
                        requirers=self.graph.requirers(ref.name),
                    )
                )
                logger.error("Pinned gem %s %s violates %s", ref.name, ref.version, requirement)
                raise PinnedVersionConflict(report)

    @staticmethod
    def _assignment_for_ref(ref: PackageRef) -> Assignment:
        kind = ref.source.kind
        if kind is SourceKind.GIT or kind is SourceKind.PATH:
            return Assignment(
                name=ref.name,
                version=Version(ref.version or "0"),
                platform=None,
                source=ref.source,
                dependencies=ref.requirements(),
            )
        if kind is SourceKind.REGISTRY:
            raise ValueError(f"registry gem '{ref.name}' cannot be pinned")
        raise AssertionError(f"unhandled source kind {kind!r}")

    async def _versions(self, name: str) -> List[GemVersion]:
        try:
            return await self.fetcher.get(name)
        except PackageNotFound:
            self.stats.not_found.add(name)
            return []

    def _candidates(self, name: str, versions: List[GemVersion]) -> List[GemVersion]:
        """Viable variants for ``name`` under the current requirements, newest first."""
        requirement = self.graph.requirement_for(name)
        allow_pre = self.resolver.allow_prerelease or requirement.mentions_prerelease
        by_version: Dict[Version, List[GemVersion]] = {}
        order: List[Version] = []
        for variant in versions:
            if variant.version not in by_version:
                by_version[variant.version] = []
                order.append(variant.version)
            by_version[variant.version].append(variant)

        candidates: List[GemVersion] = []
        for version in order:
            if version.prerelease and not allow_pre:
                continue
            if not requirement.satisfied_by(version):
                continue
            variant = select_variant(by_version[version], self.resolver.platform)
            if variant is None:
                self.stats.platform_skips += 1
                continue
            candidates.append(variant)
        return candidates

    async def _select_next(self) -> Optional[Tuple[str, List[GemVersion]]]:
        pending = self.graph.pending()
        if not pending:
            return None
        self.fetcher.prefetch(pending)
        fetched = await asyncio.gather(*(self._versions(name) for name in pending))
        best: Optional[Tuple[int, str, List[GemVersion]]] = None
        for name, versions in zip(pending, fetched):
            candidates = self._candidates(name, versions)
            key = (len(candidates), name)
            if best is None or key < best[:2]:
                best = (len(candidates), name, candidates)
        assert best is not None
        if is_debug_enabled(logger):
            logger.debug(
                "Decision",
                extra=extra_context(
                    event="decision",
                    component="resolver",
                    package=best[1],
                    count=best[0],
                    pending=len(pending),
                ),
            )
        return best[1], best[2]

    def _tick(self) -> None:
        self.stats.steps += 1
        if self.stats.steps > self.resolver.max_steps:
            self.report.step_limit_reached = True
            logger.error("Resolution exceeded %d steps", self.resolver.max_steps)
            raise ResolutionConflict(self.report)

    def _advance(self, frame: _Frame) -> bool:
        """Move ``frame`` to its next viable candidate; False when exhausted."""
        if frame.mark is not None:
            self.graph.rollback(frame.mark)
            frame.mark = None
            frame.chosen = None
        while frame.remaining:
            self._tick()
            candidate = frame.remaining.popleft()
            mark = self.graph.checkpoint()
            if self._try_assign(frame.name, candidate):
                frame.mark = mark
                frame.chosen = candidate
                self.fetcher.prefetch(self.graph.pending())
                return True
            self.graph.rollback(mark)
        return False

    def _try_assign(self, name: str, candidate: GemVersion) -> bool:
        """Tentatively assign ``candidate``; False if its dependencies cannot fit."""
        version_text = str(candidate.version)
        dependencies = candidate.dependencies
        existing = self.graph.requirements()

        if not existing.intersects(dependencies):
            for dep_name, requirement in dependencies.items():
                if dep_name in existing and not existing.get(dep_name).intersects(requirement):
                    self._record_candidate_conflict(name, version_text, dep_name, requirement_text=str(requirement))
                    return False

        self.graph.assign(
            Assignment(
                name=name,
                version=candidate.version,
                platform=None if candidate.is_generic else candidate.platform,
                dependencies=dependencies,
                checksum=candidate.checksum,
            )
        )
        for dep_name, requirement in dependencies.items():
            if dep_name != name:
                self.graph.add_edge(dep_name, Edge(name, version_text, requirement))

        for dep_name, _ in dependencies.items():
            assigned = self.graph.assignment(dep_name)
            if assigned is None or dep_name == name:
                continue
            if not self.graph.requirement_for(dep_name).satisfied_by(assigned.version):
                self._record_candidate_conflict(name, version_text, dep_name)
                return False
        return True

    def _record_candidate_conflict(
        self, name: str, version: str, dep_name: str, requirement_text: Optional[str] = None
    ) -> None:
        requirers = self.graph.requirers(dep_name)
        assigned = self.graph.assignment(dep_name)
        if requirement_text is not None:
            requirers.append(Requirer(name, version, requirement_text, self.graph.path_to(name)))
            reason = "requirements can never be satisfied together"
        elif assigned is not None:
            reason = f"selected version {assigned.version} does not satisfy every requirement"
        else:
            reason = "conflicting requirements"
        self.report.add(ConflictDetail(package=dep_name, reason=reason, requirers=requirers))
        if is_debug_enabled(logger):
            logger.debug(
                "Candidate rejected",
                extra=extra_context(
                    event="reject",
                    component="resolver",
                    package=name,
                    version=version,
                    conflict=dep_name,
                ),
            )

    def _record_exhausted(self, frame: _Frame) -> None:
        requirement = self.graph.requirement_for(frame.name)
        if frame.name in self.stats.not_found:
            reason = "not found in registry"
        elif frame.considered == 0:
            reason = f"no version satisfies {requirement}"
            if self.resolver.platform:
                reason += f" for platform {self.resolver.platform}"
        else:
            reason = f"none of {frame.considered} candidate version(s) could be used"
        self.report.add(
            ConflictDetail(package=frame.name, reason=reason, requirers=self.graph.requirers(frame.name))
        )

    def _direct(self) -> Tuple[DirectRequirement, ...]:
        """Manifest requirements as written; repeated names are joined."""
        texts: Dict[str, List[str]] = {}
        for entry in self.manifest.entries:
            bucket = texts.setdefault(entry.name, [])
            if entry.requirement and entry.requirement not in bucket:
                bucket.append(entry.requirement)
        return tuple(DirectRequirement(name, ", ".join(reqs) or None) for name, reqs in texts.items())

    def _build(self) -> Resolution:
        entries = []
        for assignment in self.graph.assignments():
            entries.append(
                ResolvedEntry(
                    name=assignment.name,
                    version=str(assignment.version),
                    platform=assignment.platform,
                    source=assignment.source,
                    dependencies=tuple(
                        Dependency(dep_name, str(requirement))
                        for dep_name, requirement in assignment.dependencies.items()
                        if dep_name != assignment.name
                    ),
                    checksum=assignment.checksum,
                )
            )
        remote = getattr(self.resolver.client, "base_url", None)
        return Resolution(
            entries=tuple(entries),
            platforms=(self.resolver.platform or Constants.GENERIC_PLATFORM,) if entries else (),
            direct=self._direct(),
            ruby_version=self.manifest.ruby_version,
            bundled_with=self.resolver.bundled_with if entries or self.manifest.entries else None,
            remote=f"{remote.rstrip('/')}/" if isinstance(remote, str) else None,
        )
