"""Tests for the compact index info decoder."""

import logging

import pytest

from registry.base import GemVersion, sort_newest_first
from registry.rubygems.compact_index import parse_info, parse_info_line
from versioning.models import Version

NOKOGIRI_INFO = """---
1.13.10 mini_portile2:~> 2.8.0,racc:~> 1.4|checksum:aaa,ruby:>= 2.6&< 3.3.dev
1.14.0 mini_portile2:~> 2.8.0,racc:~> 1.4|checksum:bbb,ruby:>= 2.7&< 3.3.dev
1.14.0-arm64-darwin racc:~> 1.4|checksum:ccc,ruby:>= 2.7&< 3.3.dev
1.14.0-x86_64-linux racc:~> 1.4|checksum:ddd
1.15.0.rc1 racc:~> 1.4|checksum:eee
"""


class TestParseInfoLine:
    """Single line decoding."""

    def test_generic_line(self):
        """Dependencies and metadata are decoded."""
        variant = parse_info_line("1.14.0 mini_portile2:~> 2.8.0,racc:~> 1.4|checksum:bbb,ruby:>= 2.7&< 3.3.dev")
        assert variant.version == Version("1.14.0")
        assert variant.platform is None
        assert variant.is_generic
        assert str(variant.dependencies.get("racc")) == "~> 1.4"
        assert variant.dependencies.names() == ["mini_portile2", "racc"]
        assert variant.checksum == "bbb"
        assert variant.ruby_requirement == ">= 2.7, < 3.3.dev"

    def test_platform_line(self):
        """The platform suffix is split from the version."""
        variant = parse_info_line("1.14.0-arm64-darwin racc:~> 1.4|checksum:ccc")
        assert variant.platform == "arm64-darwin"
        assert variant.full_name == "1.14.0-arm64-darwin"

    def test_numeric_hyphen_suffix_stays_in_version(self):
        """1.0.0-1 is a prerelease version, not a platform."""
        variant = parse_info_line("1.0.0-1 |checksum:abc")
        assert variant.platform is None
        assert str(variant.version) == "1.0.0-1"
        assert variant.version.prerelease

    def test_ampersand_joined_requirement(self):
        """Multiple constraints on one dependency are joined with '&'."""
        variant = parse_info_line("7.1.0 activesupport:>= 6.1&< 8|")
        assert str(variant.dependencies.get("activesupport")) == ">= 6.1, < 8"

    def test_no_dependencies(self):
        """A bare version is valid."""
        variant = parse_info_line("3.0.8 |checksum:fff")
        assert len(variant.dependencies) == 0
        assert variant.checksum == "fff"

    def test_broken_dependency(self):
        """A dependency without ':' is rejected."""
        with pytest.raises(ValueError):
            parse_info_line("1.0 racc|")


class TestParseInfo:
    """Whole document decoding."""

    def test_newest_first_with_generic_leading(self):
        """Variants come back newest first, the generic variant first within a version."""
        versions = parse_info(NOKOGIRI_INFO, "nokogiri")
        assert [v.full_name for v in versions] == [
            "1.15.0.rc1",
            "1.14.0",
            "1.14.0-arm64-darwin",
            "1.14.0-x86_64-linux",
            "1.13.10",
        ]

    def test_preamble_is_skipped(self):
        """Content before the '---' marker is ignored."""
        versions = parse_info("created_at: 2024-01-01\n---\n1.0 |\n")
        assert [str(v.version) for v in versions] == ["1.0"]

    def test_unreadable_line_skipped_with_warning(self, caplog):
        """One bad line does not hide the rest."""
        with caplog.at_level(logging.WARNING):
            versions = parse_info("---\n1.0 |\n1..2 |\n2.0 |\n", "rack")
        assert [str(v.version) for v in versions] == ["2.0", "1.0"]
        assert "rack" in caplog.text

    def test_empty_document(self):
        """No lines means no versions."""
        assert parse_info("") == []


def test_sort_newest_first_is_stable_for_platforms():
    """Platform variants keep name order behind the generic one."""
    variants = [
        GemVersion(Version("1.0"), "x86_64-linux"),
        GemVersion(Version("1.0"), "arm64-darwin"),
        GemVersion(Version("1.0")),
    ]
    assert [v.full_name for v in sort_newest_first(variants)] == [
        "1.0",
        "1.0-arm64-darwin",
        "1.0-x86_64-linux",
    ]
