"""
Artifactory-compatible permission target endpoints.

- PUT /api/security/permissions/{repo}: add or update permissions of a repository
- GET /api/security/permissions: list repositories with stored permissions
- GET /api/security/permissions/{repo}: render stored permissions as a permission target

A PUT request either merges the whole payload or changes nothing: parsing,
action normalization and pattern validation all complete before the merge
engine touches the store.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from management_api.core.dependencies import get_merge_engine, get_permission_store, get_settings
from management_api.domain.errors import ManagementError
from management_api.domain.models import ManagementSettings, RepoPermissions
from management_api.domain.parser import parse_permission_target
from management_api.domain.patterns import validate_target
from management_api.domain.permissions import GROUP_PREFIX, PermissionMergeEngine
from management_api.storage.permission_store import PermissionStore
from management_api.storage.storage import StorageError

logger = logging.getLogger(__name__)
router = APIRouter()

PERMISSIONS_PATH = "/api/security/permissions"

_REPO_NAME_RE = re.compile(r"[A-Za-z0-9_][A-Za-z0-9._-]*")


def _require_repo_name(repo: str) -> str:
    if not _REPO_NAME_RE.fullmatch(repo):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid repository name '{repo}'",
        )
    return repo


def _conflict(exc: StorageError) -> HTTPException:
    logger.warning(f"Stored permissions are unreadable: {exc}")
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))


def _render_target(repo: str, record: RepoPermissions) -> dict:
    users: Dict[str, List[str]] = {}
    groups: Dict[str, List[str]] = {}
    for entry in record.entries:
        actions = [action.value for action in entry.actions]
        if entry.username.startswith(GROUP_PREFIX):
            groups[entry.username[len(GROUP_PREFIX):]] = actions
        else:
            users[entry.username] = actions
    return {
        "name": repo,
        "repo": {
            "include-patterns": record.include_patterns,
            "exclude-patterns": record.exclude_patterns,
            "repositories": [repo],
            "actions": {"users": users, "groups": groups},
        },
    }


# ---------------------------------------------------------------------------
# GET /api/security/permissions
# ---------------------------------------------------------------------------

@router.get(PERMISSIONS_PATH)
async def list_permission_targets(
    request: Request,
    store: PermissionStore = Depends(get_permission_store),
) -> list:
    base_url = str(request.base_url).rstrip("/")
    try:
        repos = await store.repositories()
    except StorageError as exc:
        raise _conflict(exc)
    return [{"name": repo, "uri": f"{base_url}{PERMISSIONS_PATH}/{repo}"} for repo in repos]


# ---------------------------------------------------------------------------
# GET /api/security/permissions/{repo}
# ---------------------------------------------------------------------------

@router.get(PERMISSIONS_PATH + "/{repo}")
async def get_permission_target(
    repo: str,
    store: PermissionStore = Depends(get_permission_store),
) -> dict:
    """
    Render the stored permissions of `repo`, possibly with no principals.

    404 if the store does not know `repo`, 409 if its stored state cannot be read.
    """
    _require_repo_name(repo)
    try:
        if not await store.exists(repo):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Permission target not found")
        record = await store.load(repo)
    except StorageError as exc:
        raise _conflict(exc)
    return _render_target(repo, record)


# ---------------------------------------------------------------------------
# PUT /api/security/permissions/{repo}
# ---------------------------------------------------------------------------

@router.put(PERMISSIONS_PATH + "/{repo}")
async def add_update_permissions(
    repo: str,
    request: Request,
    engine: PermissionMergeEngine = Depends(get_merge_engine),
    settings: ManagementSettings = Depends(get_settings),
) -> Response:
    """
    Add or update the permissions of `repo` from an Artifactory permission target.

    Returns 200 with an empty body on success and 400 if the payload cannot
    be parsed, holds an unknown action or an invalid pattern, or the store
    rejects the merge.
    """
    _require_repo_name(repo)
    body = await request.body()
    try:
        target = parse_permission_target(body)
        validate_target(target, repo, strict=settings.strict_patterns)
        await engine.merge(repo, target)
    except ManagementError as exc:
        logger.warning(f"Rejected permission update for '{repo}': {exc}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    return Response(status_code=status.HTTP_200_OK)


@router.put("/{prefix:path}permissions{suffix:path}")
async def reject_unknown_permission_path(prefix: str, suffix: str) -> Response:
    """
    PUT requests that look like permission updates but do not match
    /api/security/permissions/{repo} are client errors.

    Only paths mentioning 'permissions' reach this route, so every other PUT
    keeps the 404 or 405 of the regular routing.
    """
    path = f"{prefix}permissions{suffix}"
    if "permissions" in path.strip("/").split("/"):
        logger.warning(f"Rejected permission update on unexpected path '/{path}'")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Expected {PERMISSIONS_PATH}/{{repo}}",
        )
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")
