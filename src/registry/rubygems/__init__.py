"""RubyGems compact index client."""

from .client import RubyGemsClient

__all__ = ["RubyGemsClient"]
