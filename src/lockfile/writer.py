"""Canonical serializer for lockfiles."""

from __future__ import annotations

import logging
import os
import tempfile
from typing import Dict, List, Tuple

from constants import Constants, LockfileSections

from .model import Resolution, ResolvedEntry, SourceKind, SourceRef

logger = logging.getLogger(__name__)


def _entry_lines(entry: ResolvedEntry) -> List[str]:
    lines = [f"    {entry.name} ({entry.full_version})"]
    for dep in entry.dependencies:
        if dep.is_unconstrained:
            lines.append(f"      {dep.name}")
        else:
            lines.append(f"      {dep.name} ({dep.requirement})")
    return lines


def _source_header(source: SourceRef) -> List[str]:
    if source.kind is SourceKind.GIT:
        lines = [LockfileSections.GIT, f"  remote: {source.location or ''}"]
        if source.revision:
            lines.append(f"  revision: {source.revision}")
        if source.branch:
            lines.append(f"  branch: {source.branch}")
        if source.tag:
            lines.append(f"  tag: {source.tag}")
        return lines
    return [LockfileSections.PATH, f"  remote: {source.location or ''}"]


def serialize_lockfile(resolution: Resolution) -> str:
    """Render ``resolution`` as canonical lockfile text.

    Sections appear as GIT, PATH, GEM, PLATFORMS, DEPENDENCIES, CHECKSUMS,
    RUBY VERSION, BUNDLED WITH; empty sections are omitted. An empty
    resolution renders as an empty string.
    """
    if resolution.is_empty:
        return ""

    blocks: List[List[str]] = []

    pinned: Dict[Tuple[str, ...], List[ResolvedEntry]] = {}
    for entry in resolution.entries:
        if entry.source.pinned:
            pinned.setdefault(entry.source.group_key(), []).append(entry)
    for kind in (SourceKind.GIT, SourceKind.PATH):
        for key in sorted(k for k in pinned if k[0] == kind.value):
            group = pinned[key]
            lines = _source_header(group[0].source)
            lines.append("  specs:")
            for entry in group:
                lines.extend(_entry_lines(entry))
            blocks.append(lines)

    registry_entries = resolution.by_source(SourceKind.REGISTRY)
    if registry_entries:
        remote = resolution.remote or Constants.REGISTRY_URL_RUBYGEMS.rstrip("/") + "/"
        lines = [LockfileSections.GEM, f"  remote: {remote}", "  specs:"]
        for entry in registry_entries:
            lines.extend(_entry_lines(entry))
        blocks.append(lines)

    if resolution.platforms:
        blocks.append([LockfileSections.PLATFORMS] + [f"  {p}" for p in resolution.platforms])

    if resolution.direct:
        pinned_names = {e.name for e in resolution.entries if e.source.pinned}
        lines = [LockfileSections.DEPENDENCIES]
        for req in resolution.direct:
            bang = "!" if req.name in pinned_names else ""
            if req.requirement:
                lines.append(f"  {req.name}{bang} ({req.requirement})")
            else:
                lines.append(f"  {req.name}{bang}")
        blocks.append(lines)

    with_checksums = [e for e in resolution.entries if e.checksum]
    if with_checksums:
        blocks.append(
            [LockfileSections.CHECKSUMS]
            + [f"  {e.name} ({e.full_version}) sha256={e.checksum}" for e in with_checksums]
        )

    if resolution.ruby_version:
        blocks.append([LockfileSections.RUBY_VERSION, f"   ruby {resolution.ruby_version}"])

    if resolution.bundled_with:
        blocks.append([LockfileSections.BUNDLED_WITH, f"   {resolution.bundled_with}"])

    return "\n\n".join("\n".join(block) for block in blocks) + "\n"


def write_lockfile(path: str, resolution: Resolution) -> None:
    """Write ``resolution`` to ``path`` atomically (temp file + rename)."""
    text = serialize_lockfile(resolution)
    directory = os.path.dirname(os.path.abspath(path))
    fd, tmp_path = tempfile.mkstemp(prefix=".gemlock-", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_path, path)
    except OSError:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise
    logger.info("Lockfile written to %s (%d gems)", path, len(resolution.entries))
