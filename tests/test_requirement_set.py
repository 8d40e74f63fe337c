"""Tests for RequirementSet and the token parsing helpers."""

import pytest

from versioning.errors import MalformedVersion, UnknownOperator
from versioning.models import Requirement, RequirementSet, Version
from versioning.parser import (
    is_valid_gem_name,
    parse_cli_token,
    parse_requirement,
    split_version_platform,
    tokenize_rightmost_colon,
)


class TestRequirementSet:
    """Name to requirement mapping."""

    def test_add_merges_requirements(self):
        """Adding the same name twice keeps the conjunction."""
        reqs = RequirementSet()
        reqs.add("rack", ">= 2.0")
        merged = reqs.add("rack", "< 3")
        assert str(merged) == ">= 2.0, < 3"
        assert len(reqs) == 1

    def test_get_unknown_is_any(self):
        """Unrecorded names accept any version."""
        assert RequirementSet().get("rails").is_any

    def test_satisfied_by(self):
        """Lookup plus match in one call."""
        reqs = RequirementSet({"rack": "~> 3.0"})
        assert reqs.satisfied_by("rack", Version("3.0.8"))
        assert not reqs.satisfied_by("rack", Version("2.2.8"))

    def test_intersects(self):
        """Shared names must be jointly satisfiable; others are ignored."""
        left = RequirementSet({"a": "= 1.0", "b": ">= 1"})
        assert left.intersects(RequirementSet({"b": "< 5", "c": "= 9"}))
        assert not left.intersects(RequirementSet({"a": "= 2.0"}))

    def test_merged_returns_new_set(self):
        """merged leaves both inputs untouched."""
        left = RequirementSet({"a": ">= 1"})
        right = RequirementSet({"a": "< 2", "b": "= 3"})
        result = left.merged(right)
        assert str(result.get("a")) == ">= 1, < 2"
        assert "b" not in left
        assert sorted(result) == ["a", "b"]

    def test_equality(self):
        """Sets with the same content compare equal."""
        assert RequirementSet({"a": "= 1"}) == RequirementSet({"a": Requirement.parse("= 1")})


class TestTokenParsing:
    """CLI token and lockfile version helpers."""

    def test_rightmost_colon(self):
        """Only the last colon separates name and requirement."""
        assert tokenize_rightmost_colon("rails:~> 7.1") == ("rails", "~> 7.1")
        assert tokenize_rightmost_colon("rails") == ("rails", None)
        assert tokenize_rightmost_colon("rails:") == ("rails", None)

    def test_cli_token_keeps_requirement_text(self):
        """The requirement is validated but returned as written."""
        assert parse_cli_token("rack:>= 2.0, < 4") == ("rack", ">= 2.0, < 4")
        assert parse_cli_token("rack:latest") == ("rack", None)

    def test_cli_token_bad_name(self):
        """Names with illegal characters are rejected."""
        with pytest.raises(ValueError):
            parse_cli_token("ra ck")

    def test_cli_token_bad_operator(self):
        """Unknown operators surface as UnknownOperator."""
        with pytest.raises(UnknownOperator):
            parse_cli_token("rack:=> 2.0")

    def test_gem_name_rules(self):
        """Gem names start alphanumeric and may contain dots, dashes and underscores."""
        assert is_valid_gem_name("net-http_persistent.x")
        assert not is_valid_gem_name("-rack")
        assert not is_valid_gem_name("")

    def test_parse_requirement_latest(self):
        """'latest' is shorthand for any version."""
        assert parse_requirement("latest").is_any

    @pytest.mark.parametrize("text,expected", [
        ("1.14.0", ("1.14.0", None)),
        ("1.14.0-arm64-darwin", ("1.14.0", "arm64-darwin")),
        ("1.14.0-x86_64-linux-gnu", ("1.14.0", "x86_64-linux-gnu")),
        ("1.0.0-1", ("1.0.0-1", None)),
        ("2.0-java", ("2.0", "java")),
    ])
    def test_split_version_platform(self, text, expected):
        """Platform suffixes are split off; numeric suffixes stay part of the version."""
        assert split_version_platform(text) == expected

    def test_split_version_platform_bad_version(self):
        """The version part must still parse."""
        with pytest.raises(MalformedVersion):
            split_version_platform("1..0-java")
