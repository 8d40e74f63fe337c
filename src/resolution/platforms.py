"""Platform detection and platform-variant selection."""

from __future__ import annotations

import functools
import platform as _platform
import sys
from typing import Optional, Sequence

from constants import Constants
from registry.base import GemVersion

_ARCH_NAMES = {
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "x86",
    "i686": "x86",
    "x86": "x86",
}


def _os_name() -> str:
    if sys.platform == "darwin":
        return "darwin"
    if sys.platform.startswith("linux"):
        return "linux"
    if sys.platform in ("win32", "cygwin"):
        return "mingw32"
    return sys.platform


@functools.lru_cache(maxsize=None)
def detect_current_platform() -> str:
    """Current platform in ``arch-os`` form (``arm64-darwin``, ``x86_64-linux``)."""
    machine = _platform.machine().lower()
    arch = _ARCH_NAMES.get(machine, machine or "unknown")
    return f"{arch}-{_os_name()}"


def is_generic(tag: Optional[str]) -> bool:
    """True for the platform-neutral tag."""
    return tag is None or tag == Constants.GENERIC_PLATFORM


def platform_matches(tag: Optional[str], target: str) -> bool:
    """Return True if a gem built for ``tag`` runs on ``target``.

    ``arm64-darwin-23`` matches ``arm64-darwin``: arch and os must agree,
    trailing version components are ignored.
    """
    if is_generic(tag) or tag == target:
        return True
    tag_parts = (tag or "").split("-")
    target_parts = target.split("-")
    return len(tag_parts) >= 2 and len(target_parts) >= 2 and tag_parts[:2] == target_parts[:2]


def select_variant(variants: Sequence[GemVersion], target: Optional[str]) -> Optional[GemVersion]:
    """Pick the variant of one version to install on ``target``.

    Exact tag first, then a compatible tag (first by name), then the generic
    variant. None means this version is not viable for ``target``.
    """
    generic = next((v for v in variants if v.is_generic), None)
    if target is None or is_generic(target):
        return generic
    for variant in variants:
        if variant.platform == target:
            return variant
    compatible = sorted(
        (v for v in variants if not v.is_generic and platform_matches(v.platform, target)),
        key=lambda v: v.platform or "",
    )
    if compatible:
        return compatible[0]
    return generic
