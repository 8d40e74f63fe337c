"""Lockfile data model, parser and canonical serializer."""

from .model import (
    Dependency,
    DirectRequirement,
    Resolution,
    ResolvedEntry,
    SourceKind,
    SourceRef,
)
from .parser import LockfileSyntaxError, parse_lockfile, read_lockfile
from .writer import serialize_lockfile, write_lockfile

__all__ = [
    "Dependency",
    "DirectRequirement",
    "LockfileSyntaxError",
    "Resolution",
    "ResolvedEntry",
    "SourceKind",
    "SourceRef",
    "parse_lockfile",
    "read_lockfile",
    "serialize_lockfile",
    "write_lockfile",
]
