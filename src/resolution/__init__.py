"""Dependency resolution: manifest model, dependency graph and resolver."""

from .graph import Assignment, DependencyGraph, Edge
from .manifest import ManifestError, load_manifest, manifest_from_tokens, merge_manifests
from .models import (
    ConflictDetail,
    ConflictReport,
    Manifest,
    ManifestEntry,
    PackageRef,
    PinnedVersionConflict,
    Requirer,
    ResolutionConflict,
    ResolverError,
)
from .platforms import detect_current_platform, platform_matches, select_variant
from .resolver import Resolver

__all__ = [
    "Assignment",
    "ConflictDetail",
    "ConflictReport",
    "DependencyGraph",
    "Edge",
    "Manifest",
    "ManifestEntry",
    "ManifestError",
    "PackageRef",
    "PinnedVersionConflict",
    "Requirer",
    "ResolutionConflict",
    "Resolver",
    "ResolverError",
    "detect_current_platform",
    "load_manifest",
    "manifest_from_tokens",
    "merge_manifests",
    "platform_matches",
    "select_variant",
]
