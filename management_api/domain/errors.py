"""
Error taxonomy for the management API.

Every error raised while handling a permission-target request derives from
ManagementError, so route handlers can map the whole family onto a single
400 Bad Request response.
"""

from __future__ import annotations


class ManagementError(Exception):
    """Base class for request-level failures of the management API."""


class ParseError(ManagementError):
    """The request body is not valid JSON or misses required structure."""


class InvalidPatternError(ManagementError):
    """An include/exclude path pattern contains disallowed content."""

    def __init__(self, pattern: str, reason: str):
        super().__init__(f"Invalid path pattern '{pattern}': {reason}")
        self.pattern = pattern
        self.reason = reason


class UnknownActionError(ManagementError):
    """A permission action token is outside the supported vocabulary."""

    def __init__(self, action: str):
        super().__init__(f"Unknown permission action '{action}'")
        self.action = action


class MergeError(ManagementError):
    """The permission store rejected the merge."""
