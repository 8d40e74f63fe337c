"""Token parsing utilities for gem names, requirements and versions."""

import re
from typing import Optional, Tuple

from .errors import MalformedVersion
from .models import Requirement, Version

_NUMERIC_VERSION_RE = re.compile(r"^[0-9]+(\.[0-9]+)*$")
_GEM_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._\-]*$")


def tokenize_rightmost_colon(s: str) -> Tuple[str, Optional[str]]:
    """Return (identifier, spec or None) using the rightmost-colon rule."""
    s = s.strip()
    if ':' not in s:
        return s, None
    parts = s.rsplit(':', 1)
    identifier = parts[0].strip()
    spec_part = parts[1].strip() if len(parts) > 1 else ''
    spec = spec_part if spec_part else None
    return identifier, spec


def is_valid_gem_name(name: str) -> bool:
    """Return True for names the registry accepts."""
    return bool(name) and bool(_GEM_NAME_RE.match(name))


def parse_requirement(text: Optional[str]) -> Requirement:
    """Parse a requirement string; empty or ``latest`` means any version."""
    if text is None or text.strip() == '' or text.strip().lower() == 'latest':
        return Requirement.any()
    return Requirement.parse(text)


def parse_cli_token(token: str) -> Tuple[str, Optional[str]]:
    """Parse a ``name[:requirement]`` CLI token.

    The requirement is validated but returned as written so it can be
    recorded verbatim in the DEPENDENCIES section.

    Raises:
        ValueError: if the name is not a valid gem name.
        MalformedVersion, UnknownOperator: if the requirement does not parse.
    """
    name, spec = tokenize_rightmost_colon(token)
    if not is_valid_gem_name(name):
        raise ValueError(f"Invalid gem name '{name}' in token '{token}'")
    if spec is None or spec.lower() == 'latest':
        return name, None
    parse_requirement(spec)
    return name, spec


def split_version_platform(text: str) -> Tuple[str, Optional[str]]:
    """Split ``1.14.0-arm64-darwin`` into (``1.14.0``, ``arm64-darwin``).

    The part after the first hyphen is a platform tag unless it is itself a
    purely numeric version, which keeps ``1.0.0-1`` intact. The version part
    must parse.

    Raises:
        MalformedVersion: if the version part is not a valid version.
    """
    text = text.strip()
    if '-' in text:
        version, suffix = text.split('-', 1)
        if suffix and not _NUMERIC_VERSION_RE.match(suffix):
            Version(version)
            return version, suffix
        if not suffix:
            raise MalformedVersion(text, "dangling platform separator")
    Version(text)
    return text, None
