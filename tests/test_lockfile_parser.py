"""Tests for the lockfile parser."""

import logging

import pytest

from lockfile.model import SourceKind
from lockfile.parser import LockfileSyntaxError, parse_lockfile, read_lockfile

FULL_LOCKFILE = """GIT
  remote: https://github.com/example/mylib.git
  revision: 0123abcd
  branch: main
  specs:
    mylib (4.5.0)
      rack (>= 3)

PATH
  remote: vendor/tool
  specs:
    tool (1.2.0)

GEM
  remote: https://rubygems.org/
  specs:
    nokogiri (1.14.0-arm64-darwin)
      racc (~> 1.4)
    rack (3.0.8)
    racc (1.7.3)

PLATFORMS
  arm64-darwin

DEPENDENCIES
  mylib!
  nokogiri (~> 1.14)
  tool!

CHECKSUMS
  nokogiri (1.14.0-arm64-darwin) sha256=deadbeef
  rack (3.0.8) sha256=cafe,md5=ignored

RUBY VERSION
   ruby 3.2.2p53

BUNDLED WITH
   2.5.3
"""


class TestParseLockfile:
    """Section by section decoding."""

    def test_single_specs_entry(self):
        """A platform-tagged entry keeps name, version, platform and dependency apart."""
        text = "GEM\n  remote: https://rubygems.org/\n  specs:\n    nokogiri (1.14.0-arm64-darwin)\n      racc (~> 1.4)\n"

        resolution = parse_lockfile(text)

        assert len(resolution.entries) == 1
        entry = resolution.entries[0]
        assert entry.name == "nokogiri"
        assert entry.version == "1.14.0"
        assert entry.platform == "arm64-darwin"
        assert entry.dependency_names == ["racc"]
        assert entry.dependencies[0].requirement == "~> 1.4"

    def test_full_document(self):
        """Every known section is decoded."""
        resolution = parse_lockfile(FULL_LOCKFILE)

        assert resolution.names() == ["mylib", "nokogiri", "racc", "rack", "tool"]
        mylib = resolution.find("mylib")
        assert mylib.source.kind is SourceKind.GIT
        assert mylib.source.location == "https://github.com/example/mylib.git"
        assert mylib.source.revision == "0123abcd"
        assert mylib.source.branch == "main"
        assert resolution.find("tool").source.kind is SourceKind.PATH
        assert resolution.platforms == ("arm64-darwin",)
        assert resolution.direct_names() == ["mylib", "nokogiri", "tool"]
        assert resolution.direct[1].requirement == "~> 1.14"
        assert resolution.find("nokogiri").checksum == "deadbeef"
        assert resolution.find("rack").checksum == "cafe"
        assert resolution.ruby_version == "3.2.2p53"
        assert resolution.bundled_with == "2.5.3"
        assert resolution.remote == "https://rubygems.org/"

    def test_unconstrained_dependency(self):
        """A dependency without parentheses accepts any version."""
        text = "GEM\n  specs:\n    a (1.0)\n      b\n"
        dep = parse_lockfile(text).entries[0].dependencies[0]
        assert dep.is_unconstrained

    def test_empty_input(self):
        """Empty or whitespace-only text is an empty resolution."""
        assert parse_lockfile("").is_empty
        assert parse_lockfile("\n\n  \n").is_empty

    def test_unknown_section_skipped(self, caplog):
        """Sections this tool does not know are skipped with a warning."""
        text = "PLUGIN SOURCE\n  remote: x\n\nPLATFORMS\n  ruby\n"
        with caplog.at_level(logging.WARNING):
            resolution = parse_lockfile(text)
        assert resolution.platforms == ("ruby",)
        assert "PLUGIN SOURCE" in caplog.text

    def test_trailing_whitespace_ignored(self):
        """Lines are compared without trailing blanks."""
        text = "PLATFORMS  \n  ruby   \n"
        assert parse_lockfile(text).platforms == ("ruby",)


class TestParseErrors:
    """Malformed content raises LockfileSyntaxError with the line number."""

    @pytest.mark.parametrize("text,line_no", [
        ("GEM\n  specs:\n    nokogiri 1.14.0\n", 3),
        ("GEM\n  specs:\n    nokogiri (1..0)\n", 3),
        ("GEM\n  specs:\n     nokogiri (1.0)\n", 3),
        ("  ruby\n", 1),
        ("PLATFORMS\n  arm64 darwin\n", 2),
        ("DEPENDENCIES\n  rack (>= 1\n", 2),
        ("BUNDLED WITH\n   2.5.3\n   2.5.4\n", 3),
    ])
    def test_malformed_lines(self, text, line_no):
        """Lines that do not fit their section are rejected, never dropped."""
        with pytest.raises(LockfileSyntaxError) as exc:
            parse_lockfile(text)
        assert exc.value.line_no == line_no

    def test_dependency_outside_entry(self):
        """A dependency line before any entry is an error."""
        with pytest.raises(LockfileSyntaxError):
            parse_lockfile("GEM\n  specs:\n      racc (~> 1.4)\n")


def test_read_lockfile(tmp_path):
    """read_lockfile parses a file from disk."""
    path = tmp_path / "Gemfile.lock"
    path.write_text(FULL_LOCKFILE, encoding="utf-8")

    resolution = read_lockfile(str(path))

    assert len(resolution.entries) == 5
