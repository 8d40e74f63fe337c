"""Errors raised while parsing versions and requirement strings."""


class VersionError(ValueError):
    """Base class for version and requirement parse failures."""

    def __init__(self, message: str, text: str):
        super().__init__(message)
        self.text = text


class MalformedVersion(VersionError):
    """A version string has an empty segment or an illegal character."""

    def __init__(self, text: str, reason: str = "invalid version"):
        super().__init__(f"Malformed version '{text}': {reason}", text)


class UnknownOperator(VersionError):
    """A constraint uses an operator outside the recognized set."""

    def __init__(self, op: str):
        super().__init__(f"Unknown constraint operator '{op}'", op)
        self.op = op
