from __future__ import annotations

import json
import logging
from typing import Dict, List

from pydantic import ValidationError

from management_api.domain.actions import normalize_actions
from management_api.domain.errors import ParseError
from management_api.domain.models import (
    CanonicalAction,
    PermissionSection,
    PermissionTarget,
    RawPermissionSection,
    RawPermissionTarget,
)

logger = logging.getLogger(__name__)


def _describe(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))


def _normalize_principals(raw: Dict[str, List[str]]) -> Dict[str, List[CanonicalAction]]:
    return {principal: normalize_actions(actions) for principal, actions in raw.items()}


def _normalize_section(raw: RawPermissionSection) -> PermissionSection:
    return PermissionSection(
        include_patterns=list(raw.include_patterns),
        exclude_patterns=list(raw.exclude_patterns),
        repositories=list(raw.repositories),
        users=_normalize_principals(raw.actions.users),
        groups=_normalize_principals(raw.actions.groups),
    )


def parse_permission_target(body: bytes) -> PermissionTarget:
    """
    Decode an Artifactory permission-target JSON payload.

    Raises ParseError for malformed JSON or missing/invalid structure and
    UnknownActionError for action tokens outside the vocabulary. Patterns
    are not validated here, see `patterns.validate_target`.
    """
    try:
        document = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ParseError(f"Malformed JSON body: {exc}") from exc

    if not isinstance(document, dict):
        raise ParseError("Permission target must be a JSON object")

    try:
        raw = RawPermissionTarget.model_validate(document)
    except ValidationError as exc:
        raise ParseError(f"Invalid permission target: {_describe(exc)}") from exc

    target = PermissionTarget(
        name=raw.name,
        repo=_normalize_section(raw.repo),
        build=_normalize_section(raw.build) if raw.build is not None else None,
    )
    logger.debug(
        f"Parsed permission target '{target.name}' with "
        f"{len(target.repo.users)} users and {len(target.repo.groups)} groups"
    )
    return target
