"""Data models for gem versions and version requirements.

``Version`` follows the ecosystem's segment rules: a dotted string split into
numeric and alphabetic segments, compared segment-wise with missing trailing
segments treated as ``0``. Alphabetic segments sort below numeric ones, which
makes ``1.0.a`` a prerelease of ``1.0``. A hyphen reads as ``.pre.``, so
``1.0.0-1`` is a prerelease of ``1.0.0`` as well.

``Constraint`` pairs an operator with a version, ``Requirement`` is the
conjunction of constraints a single gem must meet and ``RequirementSet`` maps
gem names to their requirement.
"""

from __future__ import annotations

import functools
import re
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Mapping, Optional, Tuple, Union

from .errors import MalformedVersion, UnknownOperator

Segment = Union[int, str]

_SEGMENT_RE = re.compile(r"^[A-Za-z0-9]+$")
_RUN_RE = re.compile(r"[0-9]+|[A-Za-z]+")
_CONSTRAINT_RE = re.compile(r"^\s*([^\sA-Za-z0-9.]*)\s*(.*?)\s*$")

OPERATORS = ("=", "!=", ">", "<", ">=", "<=", "~>")


def _compare_segments(left: Tuple[Segment, ...], right: Tuple[Segment, ...]) -> int:
    """Compare two segment tuples, padding the shorter one with ``0``."""
    for i in range(max(len(left), len(right))):
        a = left[i] if i < len(left) else 0
        b = right[i] if i < len(right) else 0
        if a == b:
            continue
        if isinstance(a, str) and isinstance(b, int):
            return -1
        if isinstance(a, int) and isinstance(b, str):
            return 1
        return -1 if a < b else 1  # type: ignore[operator]
    return 0


@functools.total_ordering
class Version:
    """A parsed gem version."""

    __slots__ = ("raw", "segments", "_canonical")

    def __init__(self, text: str):
        if not isinstance(text, str):
            raise MalformedVersion(str(text), "not a string")
        raw = text.strip()
        if not raw:
            raise MalformedVersion(text, "empty version")
        segments: List[Segment] = []
        # a hyphen starts a prerelease: 1.0.0-1 reads as 1.0.0.pre.1
        for piece in raw.replace("-", ".pre.").split("."):
            if not piece:
                raise MalformedVersion(text, "empty segment")
            if not _SEGMENT_RE.match(piece):
                raise MalformedVersion(text, f"illegal character in segment '{piece}'")
            for run in _RUN_RE.findall(piece):
                segments.append(int(run) if run.isdigit() else run)
        self.raw = raw
        self.segments: Tuple[Segment, ...] = tuple(segments)
        canonical = list(segments)
        while canonical and canonical[-1] == 0:
            canonical.pop()
        self._canonical = tuple(canonical)

    @classmethod
    def parse(cls, text: str) -> "Version":
        """Parse ``text``; raises MalformedVersion."""
        return cls(text)

    @property
    def prerelease(self) -> bool:
        """True when any segment is alphabetic."""
        return any(isinstance(s, str) for s in self.segments)

    def release(self) -> "Version":
        """Return the version without its prerelease segments."""
        if not self.prerelease:
            return self
        segments: List[Segment] = []
        for s in self.segments:
            if isinstance(s, str):
                break
            segments.append(s)
        return Version(".".join(str(s) for s in segments) or "0")

    def bump(self) -> "Version":
        """Return the exclusive upper bound used by the pessimistic operator."""
        segments = list(self.segments)
        while any(isinstance(s, str) for s in segments):
            segments.pop()
        if len(segments) > 1:
            segments.pop()
        if not segments:
            segments = [0]
        segments[-1] = int(segments[-1]) + 1
        return Version(".".join(str(s) for s in segments))

    def compare(self, other: "Version") -> int:
        """Return -1, 0 or 1."""
        return _compare_segments(self.segments, other.segments)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.compare(other) == 0

    def __lt__(self, other: "Version") -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.compare(other) < 0

    def __hash__(self) -> int:
        return hash(self._canonical)

    def __str__(self) -> str:
        return self.raw

    def __repr__(self) -> str:
        return f"Version({self.raw!r})"


def parse_version(text: str) -> Version:
    """Parse a version string."""
    return Version(text)


def compare(a: Union[str, Version], b: Union[str, Version]) -> int:
    """Compare two versions given as strings or ``Version`` objects."""
    left = a if isinstance(a, Version) else Version(a)
    right = b if isinstance(b, Version) else Version(b)
    return left.compare(right)


@dataclass(frozen=True)
class Constraint:
    """An operator applied to a version (``~> 2.1``)."""

    op: str
    version: Version
    upper: Optional[Version] = field(default=None, repr=False)

    def __post_init__(self):
        if self.op not in OPERATORS:
            raise UnknownOperator(self.op)
        if self.op == "~>" and self.upper is None:
            object.__setattr__(self, "upper", self.version.bump())

    @classmethod
    def parse(cls, op: str, text: str) -> "Constraint":
        """Build a constraint from an operator and a version string."""
        op = (op or "=").strip()
        if op not in OPERATORS:
            raise UnknownOperator(op)
        return cls(op, Version(text))

    @classmethod
    def from_string(cls, text: str) -> "Constraint":
        """Parse a single ``"op version"`` string; a bare version means ``=``."""
        m = _CONSTRAINT_RE.match(text or "")
        if m is None:
            raise MalformedVersion(text or "", "unreadable constraint")
        op, ver = m.group(1) or "=", m.group(2)
        if op not in OPERATORS:
            raise UnknownOperator(op)
        if not ver:
            raise MalformedVersion(text or "", "missing version")
        return cls.parse(op, ver)

    def satisfied_by(self, version: Version) -> bool:
        """Return True if ``version`` meets this constraint."""
        c = version.compare(self.version)
        if self.op == "=":
            return c == 0
        if self.op == "!=":
            return c != 0
        if self.op == ">":
            return c > 0
        if self.op == "<":
            return c < 0
        if self.op == ">=":
            return c >= 0
        if self.op == "<=":
            return c <= 0
        # "~>": lower bound inclusive, release part strictly below the bump
        assert self.upper is not None
        return c >= 0 and version.release() < self.upper

    def __str__(self) -> str:
        return f"{self.op} {self.version}"


ANY_CONSTRAINT = Constraint(">=", Version("0"))


class _Bounds:
    """Interval arithmetic over constraints, used for satisfiability checks."""

    def __init__(self) -> None:
        self.lower: Optional[Version] = None
        self.lower_inclusive = True
        self.upper: Optional[Version] = None
        self.upper_inclusive = True
        self.excluded: List[Version] = []

    def raise_lower(self, version: Version, inclusive: bool) -> None:
        if (
            self.lower is None
            or version > self.lower
            or (version == self.lower and not inclusive)
        ):
            self.lower, self.lower_inclusive = version, inclusive

    def cut_upper(self, version: Version, inclusive: bool) -> None:
        if (
            self.upper is None
            or version < self.upper
            or (version == self.upper and not inclusive)
        ):
            self.upper, self.upper_inclusive = version, inclusive

    def add(self, constraint: Constraint) -> None:
        op, v = constraint.op, constraint.version
        if op == "=":
            self.raise_lower(v, True)
            self.cut_upper(v, True)
        elif op == "!=":
            self.excluded.append(v)
        elif op == ">":
            self.raise_lower(v, False)
        elif op == ">=":
            self.raise_lower(v, True)
        elif op == "<":
            self.cut_upper(v, False)
        elif op == "<=":
            self.cut_upper(v, True)
        else:
            assert constraint.upper is not None
            self.raise_lower(v, True)
            self.cut_upper(constraint.upper, False)

    def empty(self) -> bool:
        if self.lower is None or self.upper is None:
            return False
        if self.lower > self.upper:
            return True
        if self.lower == self.upper:
            if not (self.lower_inclusive and self.upper_inclusive):
                return True
            return any(self.lower == v for v in self.excluded)
        return False


@dataclass(frozen=True)
class Requirement:
    """Conjunction of constraints placed on one gem."""

    constraints: Tuple[Constraint, ...] = (ANY_CONSTRAINT,)

    @classmethod
    def parse(cls, text: Optional[str]) -> "Requirement":
        """Parse ``"~> 1.4, >= 1.4.2"``; empty or None means any version."""
        if text is None or not text.strip():
            return cls()
        parts = [p for p in (s.strip() for s in text.split(",")) if p]
        if not parts:
            return cls()
        return cls(tuple(Constraint.from_string(p) for p in parts))

    @classmethod
    def any(cls) -> "Requirement":
        """Requirement satisfied by every version."""
        return cls()

    @property
    def is_any(self) -> bool:
        """True when this is the ``>= 0`` requirement."""
        return self.constraints == (ANY_CONSTRAINT,)

    @property
    def mentions_prerelease(self) -> bool:
        """True if any constraint names a prerelease version."""
        return any(c.version.prerelease for c in self.constraints)

    def satisfied_by(self, version: Version) -> bool:
        """Return True when every constraint accepts ``version``."""
        return all(c.satisfied_by(version) for c in self.constraints)

    def merge(self, other: "Requirement") -> "Requirement":
        """Return the conjunction of both requirements without duplicates."""
        merged: List[Constraint] = [c for c in self.constraints if c != ANY_CONSTRAINT]
        for c in other.constraints:
            if c != ANY_CONSTRAINT and c not in merged:
                merged.append(c)
        if not merged:
            return Requirement()
        return Requirement(tuple(merged))

    def is_satisfiable(self) -> bool:
        """Return False when no version could meet all constraints."""
        bounds = _Bounds()
        for c in self.constraints:
            bounds.add(c)
        return not bounds.empty()

    def intersects(self, other: "Requirement") -> bool:
        """True if some version could satisfy both requirements."""
        return self.merge(other).is_satisfiable()

    def __str__(self) -> str:
        return ", ".join(str(c) for c in self.constraints)


class RequirementSet:
    """Mapping of gem name to the requirement accumulated for it."""

    def __init__(self, requirements: Optional[Mapping[str, Union[Requirement, str]]] = None):
        self._requirements: Dict[str, Requirement] = {}
        for name, req in (requirements or {}).items():
            self.add(name, req)

    def add(self, name: str, requirement: Union[Requirement, str, None]) -> Requirement:
        """Merge ``requirement`` into the entry for ``name`` and return the result."""
        if not isinstance(requirement, Requirement):
            requirement = Requirement.parse(requirement)
        current = self._requirements.get(name)
        merged = requirement if current is None else current.merge(requirement)
        self._requirements[name] = merged
        return merged

    def get(self, name: str) -> Requirement:
        """Requirement for ``name``; any version when nothing was recorded."""
        return self._requirements.get(name, Requirement())

    def satisfied_by(self, name: str, version: Version) -> bool:
        """Return True if ``version`` of ``name`` meets the recorded requirement."""
        return self.get(name).satisfied_by(version)

    def intersects(self, other: "RequirementSet") -> bool:
        """True if, for every shared name, some version could satisfy both sets."""
        for name, req in self._requirements.items():
            if name in other and not req.intersects(other.get(name)):
                return False
        return True

    def merged(self, other: "RequirementSet") -> "RequirementSet":
        """Return a new set holding the conjunction of both sets."""
        result = self.copy()
        for name, req in other.items():
            result.add(name, req)
        return result

    def copy(self) -> "RequirementSet":
        result = RequirementSet()
        result._requirements = dict(self._requirements)
        return result

    def names(self) -> List[str]:
        return list(self._requirements)

    def items(self) -> Iterator[Tuple[str, Requirement]]:
        return iter(self._requirements.items())

    def __contains__(self, name: object) -> bool:
        return name in self._requirements

    def __iter__(self) -> Iterator[str]:
        return iter(self._requirements)

    def __len__(self) -> int:
        return len(self._requirements)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RequirementSet):
            return NotImplemented
        return self._requirements == other._requirements

    def __repr__(self) -> str:
        inner = ", ".join(f"{k}: {v}" for k, v in self._requirements.items())
        return f"RequirementSet({{{inner}}})"
