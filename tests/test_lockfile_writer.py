"""Tests for the canonical lockfile serializer."""

import os

from lockfile.model import Dependency, DirectRequirement, Resolution, ResolvedEntry, SourceKind, SourceRef
from lockfile.parser import parse_lockfile
from lockfile.writer import serialize_lockfile, write_lockfile

EXPECTED = """GIT
  remote: https://github.com/example/mylib.git
  revision: 0123abcd
  specs:
    mylib (4.5.0)
      rack (>= 3)

GEM
  remote: https://rubygems.org/
  specs:
    nokogiri (1.14.0-arm64-darwin)
      racc (~> 1.4)
    racc (1.7.3)
    rack (3.0.8)

PLATFORMS
  arm64-darwin

DEPENDENCIES
  mylib! (~> 4.0)
  nokogiri

CHECKSUMS
  rack (3.0.8) sha256=cafe

RUBY VERSION
   ruby 3.2.2

BUNDLED WITH
   2.5.3
"""


def _resolution(entries_order=None):
    git = SourceRef(SourceKind.GIT, "https://github.com/example/mylib.git", revision="0123abcd")
    entries = [
        ResolvedEntry("rack", "3.0.8", checksum="cafe"),
        ResolvedEntry("nokogiri", "1.14.0", "arm64-darwin", dependencies=(Dependency("racc", "~> 1.4"),)),
        ResolvedEntry("mylib", "4.5.0", source=git, dependencies=(Dependency("rack", ">= 3"),)),
        ResolvedEntry("racc", "1.7.3"),
    ]
    if entries_order:
        entries = [entries[i] for i in entries_order]
    return Resolution(
        entries=tuple(entries),
        platforms=("arm64-darwin",),
        direct=(DirectRequirement("nokogiri"), DirectRequirement("mylib", "~> 4.0")),
        ruby_version="3.2.2",
        bundled_with="2.5.3",
        remote="https://rubygems.org/",
    )


class TestSerializeLockfile:
    """Canonical output."""

    def test_canonical_layout(self):
        """Sections, ordering and indentation match the expected document."""
        assert serialize_lockfile(_resolution()) == EXPECTED

    def test_insertion_order_does_not_matter(self):
        """Equal resolutions built in different orders serialize identically."""
        assert serialize_lockfile(_resolution([3, 2, 1, 0])) == serialize_lockfile(_resolution())

    def test_round_trip(self):
        """parse(serialize(r)) == r, and serializing again is byte-identical."""
        original = _resolution()
        text = serialize_lockfile(original)
        reparsed = parse_lockfile(text)
        assert reparsed == original
        assert serialize_lockfile(reparsed) == text

    def test_empty_resolution(self):
        """An empty resolution serializes to nothing."""
        assert serialize_lockfile(Resolution.empty()) == ""

    def test_default_remote(self):
        """Registry entries without a recorded remote use the default registry."""
        text = serialize_lockfile(Resolution(entries=(ResolvedEntry("rack", "3.0.8"),)))
        assert "  remote: https://rubygems.org/\n" in text

    def test_path_section_precedes_gem(self):
        """Pinned sources come before the registry section."""
        resolution = Resolution(entries=(
            ResolvedEntry("rack", "3.0.8"),
            ResolvedEntry("tool", "1.2.0", source=SourceRef(SourceKind.PATH, "vendor/tool")),
        ))
        text = serialize_lockfile(resolution)
        assert text.index("PATH\n  remote: vendor/tool\n  specs:\n    tool (1.2.0)") < text.index("GEM")


def test_write_lockfile(tmp_path):
    """The lockfile is written atomically without leftovers."""
    path = tmp_path / "Gemfile.lock"

    write_lockfile(str(path), _resolution())

    assert path.read_text(encoding="utf-8") == EXPECTED
    assert os.listdir(tmp_path) == ["Gemfile.lock"]
