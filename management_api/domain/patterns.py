from __future__ import annotations

import re
from typing import List, Optional

from management_api.domain.errors import InvalidPatternError
from management_api.domain.models import PermissionTarget

MATCH_ALL = "**"

# Segment names plus '*' wildcards; '/' separates segments.
_SEGMENT_RE = re.compile(r"[A-Za-z0-9._*-]+")


def repo_pattern(repo: str) -> str:
    """The pattern matching everything inside `repo`."""
    return f"{repo}/{MATCH_ALL}"


def validate_pattern(pattern: str, repo: Optional[str] = None, strict: bool = False) -> None:
    """
    Check a single include/exclude path pattern.

    Raises InvalidPatternError if the pattern carries percent-encoded or
    backslash-escaped characters (used to smuggle an encoded '/'), unknown
    characters, empty or relative segments, or a '**' glob that is not the
    final whole segment. With `strict`, only '**' and '<repo>/**' pass.
    """
    if not isinstance(pattern, str):
        raise InvalidPatternError(repr(pattern), "pattern must be a string")
    if pattern == "":
        raise InvalidPatternError(pattern, "empty pattern")
    if "%" in pattern or "\\" in pattern:
        raise InvalidPatternError(pattern, "encoded or escaped characters are not allowed")

    if strict:
        allowed = {MATCH_ALL}
        if repo:
            allowed.add(repo_pattern(repo))
        if pattern not in allowed:
            raise InvalidPatternError(pattern, f"only {sorted(allowed)} are accepted")
        return

    segments = pattern.split("/")
    last = len(segments) - 1
    for index, segment in enumerate(segments):
        if segment == "":
            raise InvalidPatternError(pattern, "empty path segment")
        if segment in (".", ".."):
            raise InvalidPatternError(pattern, "relative path segments are not allowed")
        if not _SEGMENT_RE.fullmatch(segment):
            raise InvalidPatternError(pattern, f"unsupported characters in segment '{segment}'")
        if MATCH_ALL in segment:
            if segment != MATCH_ALL:
                raise InvalidPatternError(pattern, "'**' must be a whole path segment")
            if index != last:
                raise InvalidPatternError(pattern, "'**' must be the last path segment")


def validate_patterns(patterns: List[str], repo: Optional[str] = None, strict: bool = False) -> None:
    """
    Validate a pattern list.

    A list consisting of a single empty string means "no patterns" and is
    accepted; an empty string next to other patterns is not.
    """
    if patterns == [""]:
        return
    for pattern in patterns:
        validate_pattern(pattern, repo=repo, strict=strict)


def validate_target(target: PermissionTarget, repo: str, strict: bool = False) -> None:
    """Validate every pattern of every section before anything is merged."""
    for section in target.sections():
        validate_patterns(section.include_patterns, repo=repo, strict=strict)
        validate_patterns(section.exclude_patterns, repo=repo, strict=strict)
