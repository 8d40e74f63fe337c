"""Gem version parsing, comparison and requirement matching."""

from .errors import MalformedVersion, UnknownOperator, VersionError
from .models import Constraint, Requirement, RequirementSet, Version, compare, parse_version

__all__ = [
    "Constraint",
    "MalformedVersion",
    "Requirement",
    "RequirementSet",
    "UnknownOperator",
    "Version",
    "VersionError",
    "compare",
    "parse_version",
]
