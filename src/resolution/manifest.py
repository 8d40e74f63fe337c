"""Manifest loading from YAML files and ``name[:requirement]`` CLI tokens.

Manifest file layout::

    ruby: 3.2.2
    gems:
      - name: rails
        requirement: "~> 7.1"
      - name: mylib
        git: https://example.com/mylib.git
        revision: 0123abc
        version: 4.5.0
        dependencies:
          rack: ">= 2.0"
      - name: local_tool
        path: vendor/local_tool
        version: 0.1.0

Versions and requirements must be YAML strings; quote anything YAML would
read as a number (``"1.10"``).
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

import yaml

from common.logging_utils import extra_context, is_debug_enabled
from versioning.errors import VersionError
from versioning.parser import is_valid_gem_name, parse_cli_token, parse_requirement

from .models import Manifest, ManifestEntry, PackageRef

logger = logging.getLogger(__name__)


class ManifestError(ValueError):
    """The manifest file or a manifest item is malformed."""


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _version_text(value: Any, where: str) -> Optional[str]:
    """Like _text, but YAML numbers are refused: 1.10 would load as 1.1."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ManifestError(f"{where} must be a quoted string, got {value!r}")
    return _text(value)


def _dependencies(item: Mapping[str, Any], name: str) -> Dict[str, str]:
    deps = item.get("dependencies") or {}
    if not isinstance(deps, Mapping):
        raise ManifestError(f"dependencies of '{name}' must be a mapping of name to requirement")
    result: Dict[str, str] = {}
    for dep_name, requirement in deps.items():
        dep_name = str(dep_name)
        if not is_valid_gem_name(dep_name):
            raise ManifestError(f"invalid dependency name '{dep_name}' for '{name}'")
        text = _version_text(requirement, f"requirement of '{dep_name}' for '{name}'") or ""
        parse_requirement(text)
        result[dep_name] = text
    return result


def _entry_from_item(item: Any, index: int) -> ManifestEntry:
    if isinstance(item, str):
        name, requirement = parse_cli_token(item)
        return ManifestEntry(name, requirement)
    if not isinstance(item, Mapping):
        raise ManifestError(f"gems[{index}] must be a mapping or a 'name[:requirement]' string")

    name = _text(item.get("name"))
    if name is None or not is_valid_gem_name(name):
        raise ManifestError(f"gems[{index}] has a missing or invalid name")
    requirement = _version_text(item.get("requirement"), f"requirement of '{name}'")
    if requirement is not None:
        parse_requirement(requirement)

    git = _text(item.get("git"))
    path = _text(item.get("path"))
    if git and path:
        raise ManifestError(f"'{name}' cannot have both git and path sources")

    ref = None
    if git or path:
        version = _version_text(item.get("version"), f"version of '{name}'")
        if version is None:
            raise ManifestError(f"'{name}' needs a version when sourced from git or path")
        deps = _dependencies(item, name)
        if git:
            ref = PackageRef.git(
                name,
                version,
                git,
                revision=_text(item.get("revision")),
                branch=_text(item.get("branch")),
                tag=_text(item.get("tag")),
                dependencies=deps,
            )
        else:
            ref = PackageRef.path(name, version, path, dependencies=deps)
    return ManifestEntry(name, requirement, ref)


def manifest_from_data(data: Any) -> Manifest:
    """Build a Manifest from an already-decoded YAML/JSON document."""
    if data is None:
        return Manifest()
    if not isinstance(data, Mapping):
        raise ManifestError("manifest must be a mapping with a 'gems' list")
    gems = data.get("gems") or []
    if not isinstance(gems, list):
        raise ManifestError("'gems' must be a list")
    try:
        entries = [_entry_from_item(item, i) for i, item in enumerate(gems)]
    except ManifestError:
        raise
    except ValueError as exc:
        raise ManifestError(str(exc)) from exc
    return Manifest(entries, ruby_version=_version_text(data.get("ruby"), "ruby"))


def load_manifest(path: str) -> Manifest:
    """Read a YAML manifest file.

    Raises:
        OSError: the file cannot be read.
        ManifestError: the content is not a valid manifest.
    """
    with open(path, "r", encoding="utf-8") as fh:
        try:
            data = yaml.safe_load(fh)
        except yaml.YAMLError as exc:
            raise ManifestError(f"{path}: {exc}") from exc
    manifest = manifest_from_data(data)
    if is_debug_enabled(logger):
        logger.debug(
            "Loaded manifest",
            extra=extra_context(
                event="manifest_loaded",
                component="manifest",
                path=path,
                count=len(manifest),
                pinned=len(manifest.pinned_refs()),
            ),
        )
    return manifest


def manifest_from_tokens(tokens: Iterable[str]) -> Manifest:
    """Build a Manifest from ``name[:requirement]`` tokens."""
    entries: List[ManifestEntry] = []
    for token in tokens:
        try:
            name, requirement = parse_cli_token(token)
        except VersionError as exc:
            raise ManifestError(f"invalid requirement in '{token}': {exc}") from exc
        except ValueError as exc:
            raise ManifestError(str(exc)) from exc
        entries.append(ManifestEntry(name, requirement))
    return Manifest(entries)


def merge_manifests(*manifests: Manifest) -> Manifest:
    """Concatenate entries; the first non-empty ruby version wins."""
    entries: List[ManifestEntry] = []
    ruby_version = None
    for manifest in manifests:
        entries.extend(manifest.entries)
        if ruby_version is None:
            ruby_version = manifest.ruby_version
    return Manifest(entries, ruby_version=ruby_version)
