"""External model mapping directory."""

from twx.mapping.directory import MappingDirectory

__all__ = ["MappingDirectory"]
