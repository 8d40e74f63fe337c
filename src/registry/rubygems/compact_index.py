"""Decoder for compact index ``/info/<gem>`` documents.

Each line after the ``---`` marker describes one published variant::

    1.14.0-arm64-darwin racc:~> 1.4|checksum:5a1e...,ruby:>= 2.7&< 3.4.dev

Dependency requirements are joined with ``&``; the same holds for the
``ruby`` metadata value.
"""

from __future__ import annotations

import logging
from typing import List

from versioning.errors import VersionError
from versioning.models import RequirementSet, Version
from versioning.parser import split_version_platform

from ..base import GemVersion, sort_newest_first

logger = logging.getLogger(__name__)


def _requirement_text(raw: str) -> str:
    return ", ".join(p.strip() for p in raw.split("&") if p.strip())


def parse_info_line(line: str) -> GemVersion:
    """Decode a single info line.

    Raises:
        ValueError: on a structurally broken line or an unparsable version.
    """
    body, _, meta = line.partition("|")
    body = body.strip()
    if not body:
        raise ValueError(f"empty info line: {line!r}")
    version_part, _, deps_part = body.partition(" ")
    version_text, platform = split_version_platform(version_part)

    dependencies = RequirementSet()
    for dep in deps_part.split(","):
        dep = dep.strip()
        if not dep:
            continue
        name, sep, req = dep.partition(":")
        if not sep or not name:
            raise ValueError(f"bad dependency '{dep}' in info line: {line!r}")
        dependencies.add(name.strip(), _requirement_text(req))

    checksum = None
    ruby_requirement = None
    for item in meta.split(","):
        key, sep, value = item.strip().partition(":")
        if not sep:
            continue
        if key == "checksum":
            checksum = value.strip() or None
        elif key == "ruby":
            ruby_requirement = _requirement_text(value) or None

    return GemVersion(
        version=Version(version_text),
        platform=platform,
        dependencies=dependencies,
        checksum=checksum,
        ruby_requirement=ruby_requirement,
    )


def parse_info(text: str, name: str = "") -> List[GemVersion]:
    """Decode a whole info document, newest first.

    Lines that fail to decode are skipped with a warning so one bad release
    does not hide the rest of the gem's history.
    """
    versions: List[GemVersion] = []
    lines = text.splitlines()
    started = "---" not in (row.strip() for row in lines)
    for lineno, line in enumerate(lines, start=1):
        if not started:
            started = line.strip() == "---"
            continue
        if not line.strip() or line.strip() == "---":
            continue
        try:
            versions.append(parse_info_line(line))
        except (ValueError, VersionError) as exc:
            logger.warning("Skipping unreadable info line %d for %s: %s", lineno, name or "?", exc)
    return sort_newest_first(versions)
