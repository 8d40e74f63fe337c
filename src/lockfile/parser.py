"""Parser for Bundler-compatible lockfiles.

The format is line oriented and indentation sensitive::

    GEM
      remote: https://rubygems.org/
      specs:
        nokogiri (1.14.0-arm64-darwin)
          racc (~> 1.4)

    PLATFORMS
      arm64-darwin

    DEPENDENCIES
      nokogiri (~> 1.14)

Empty input yields an empty Resolution. Blank lines and trailing whitespace
are ignored; any other line that does not fit its section raises
LockfileSyntaxError.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from typing import Dict, List, Optional, Tuple

from constants import LockfileSections
from versioning.errors import VersionError
from versioning.parser import split_version_platform

from .model import (
    Dependency,
    DirectRequirement,
    REGISTRY_SOURCE,
    Resolution,
    ResolvedEntry,
    SourceKind,
    SourceRef,
)

logger = logging.getLogger(__name__)

_SOURCE_SECTIONS = {
    LockfileSections.GEM: SourceKind.REGISTRY,
    LockfileSections.GIT: SourceKind.GIT,
    LockfileSections.PATH: SourceKind.PATH,
}
_KNOWN_SECTIONS = set(_SOURCE_SECTIONS) | {
    LockfileSections.PLATFORMS,
    LockfileSections.DEPENDENCIES,
    LockfileSections.CHECKSUMS,
    LockfileSections.RUBY_VERSION,
    LockfileSections.BUNDLED_WITH,
}

_ENTRY_RE = re.compile(r"^(?P<name>[^\s()]+) \((?P<version>[^()\s]+)\)$")
_DEP_RE = re.compile(r"^(?P<name>[^\s()!]+)(?: \((?P<req>[^()]+)\))?$")
_DIRECT_RE = re.compile(r"^(?P<name>[^\s()!]+)(?P<pinned>!)?(?: \((?P<req>[^()]+)\))?$")
_OPTION_RE = re.compile(r"^(?P<key>[a-z_]+):(?: (?P<value>.*))?$")
_PLATFORM_RE = re.compile(r"^\S+$")
_CHECKSUM_RE = re.compile(r"^(?P<name>[^\s()]+) \((?P<version>[^()\s]+)\)(?: (?P<sums>\S+))?$")


class LockfileSyntaxError(ValueError):
    """A line inside a known section does not match that section's shape."""

    def __init__(self, line_no: int, line: str, message: str):
        super().__init__(f"Lockfile syntax error at line {line_no}: {message}: {line.strip()!r}")
        self.line_no = line_no
        self.line = line
        self.message = message


def _indent(line: str) -> int:
    return len(line) - len(line.lstrip(" "))


class _Parser:
    """Single-pass cursor over the lockfile lines."""

    def __init__(self, text: str):
        self.lines = [line.rstrip() for line in text.splitlines()]
        self.pos = 0
        self.entries: List[ResolvedEntry] = []
        self.platforms: List[str] = []
        self.direct: List[DirectRequirement] = []
        self.checksums: Dict[Tuple[str, str], str] = {}
        self.ruby_version: Optional[str] = None
        self.bundled_with: Optional[str] = None
        self.remote: Optional[str] = None

    def error(self, message: str) -> LockfileSyntaxError:
        return LockfileSyntaxError(self.pos + 1, self.lines[self.pos], message)

    def body(self):
        """Yield indented lines of the current section, skipping blanks."""
        while self.pos < len(self.lines):
            line = self.lines[self.pos]
            if not line:
                self.pos += 1
                continue
            if _indent(line) == 0:
                return
            yield line
            self.pos += 1

    def parse(self) -> Resolution:
        while self.pos < len(self.lines):
            line = self.lines[self.pos]
            if not line:
                self.pos += 1
                continue
            if _indent(line) != 0:
                raise self.error("indented line outside of any section")
            header = line.strip()
            self.pos += 1
            if header in _SOURCE_SECTIONS:
                self.parse_source(_SOURCE_SECTIONS[header])
            elif header == LockfileSections.PLATFORMS:
                self.parse_platforms()
            elif header == LockfileSections.DEPENDENCIES:
                self.parse_dependencies()
            elif header == LockfileSections.CHECKSUMS:
                self.parse_checksums()
            elif header == LockfileSections.RUBY_VERSION:
                value = self.parse_single_value()
                if value is not None and value.startswith("ruby "):
                    value = value[len("ruby "):].strip()
                self.ruby_version = value
            elif header == LockfileSections.BUNDLED_WITH:
                self.bundled_with = self.parse_single_value()
            else:
                logger.warning("Skipping unknown lockfile section '%s'", header)
                for _ in self.body():
                    pass
        return self.build()

    def parse_source(self, kind: SourceKind) -> None:
        options: Dict[str, str] = {}
        in_specs = False
        current: Optional[dict] = None
        pending: List[dict] = []

        for line in self.body():
            indent = _indent(line)
            text = line.strip()
            if indent == 2:
                m = _OPTION_RE.match(text)
                if not m:
                    raise self.error("expected 'key: value' or 'specs:'")
                if m.group("key") == "specs":
                    in_specs = True
                elif (m.group("value") or "").strip():
                    options[m.group("key")] = m.group("value").strip()
                current = None
            elif indent == 4 and in_specs:
                m = _ENTRY_RE.match(text)
                if not m:
                    raise self.error("expected 'name (version)'")
                try:
                    version, platform = split_version_platform(m.group("version"))
                except VersionError as exc:
                    raise self.error(f"invalid version ({exc})") from exc
                current = {"name": m.group("name"), "version": version, "platform": platform, "deps": []}
                pending.append(current)
            elif indent == 6 and current is not None:
                m = _DEP_RE.match(text)
                if not m:
                    raise self.error("expected 'name' or 'name (requirement)'")
                current["deps"].append(Dependency(m.group("name"), m.group("req") or ""))
            else:
                raise self.error(f"unexpected indentation in {kind.value} section")

        if kind is SourceKind.REGISTRY:
            source = REGISTRY_SOURCE
            if self.remote is None:
                self.remote = options.get("remote")
        else:
            source = SourceRef(
                kind=kind,
                location=options.get("remote"),
                revision=options.get("revision") if kind is SourceKind.GIT else None,
                branch=options.get("branch") if kind is SourceKind.GIT else None,
                tag=options.get("tag") if kind is SourceKind.GIT else None,
            )
        for item in pending:
            self.entries.append(
                ResolvedEntry(
                    name=item["name"],
                    version=item["version"],
                    platform=item["platform"],
                    source=source,
                    dependencies=tuple(item["deps"]),
                )
            )

    def parse_platforms(self) -> None:
        for line in self.body():
            text = line.strip()
            if _indent(line) != 2 or not _PLATFORM_RE.match(text):
                raise self.error("expected a single platform tag")
            self.platforms.append(text)

    def parse_dependencies(self) -> None:
        for line in self.body():
            m = _DIRECT_RE.match(line.strip())
            if _indent(line) != 2 or not m:
                raise self.error("expected 'name' or 'name (requirement)'")
            self.direct.append(DirectRequirement(m.group("name"), m.group("req")))

    def parse_checksums(self) -> None:
        for line in self.body():
            m = _CHECKSUM_RE.match(line.strip())
            if _indent(line) != 2 or not m:
                raise self.error("expected 'name (version) sha256=...'")
            sums = m.group("sums")
            if not sums:
                continue
            for item in sums.split(","):
                algo, _, digest = item.partition("=")
                if algo == "sha256" and digest:
                    self.checksums[(m.group("name"), m.group("version"))] = digest

    def parse_single_value(self) -> Optional[str]:
        value: Optional[str] = None
        for line in self.body():
            if value is not None:
                raise self.error("section takes a single value line")
            value = line.strip()
        return value

    def build(self) -> Resolution:
        entries = self.entries
        if self.checksums:
            entries = [
                dataclasses.replace(e, checksum=self.checksums.get((e.name, e.full_version), e.checksum))
                for e in entries
            ]
        return Resolution(
            entries=tuple(entries),
            platforms=tuple(self.platforms),
            direct=tuple(self.direct),
            ruby_version=self.ruby_version,
            bundled_with=self.bundled_with,
            remote=self.remote,
        )


def parse_lockfile(text: str) -> Resolution:
    """Parse lockfile text into a Resolution.

    Raises:
        LockfileSyntaxError: on a malformed line inside a known section.
    """
    if not text or not text.strip():
        return Resolution.empty()
    return _Parser(text).parse()


def read_lockfile(path: str) -> Resolution:
    """Read and parse the lockfile at ``path``."""
    with open(path, "r", encoding="utf-8") as f:
        return parse_lockfile(f.read())
