"""
Repository configuration endpoint.

POST /api/repos/{user} accepts a URL-encoded form with the repository name
(`repo`) and its YAML configuration (`config`), stores the configuration as
`{user}/{repo}.yaml` and redirects to the repository dashboard page.
"""

from __future__ import annotations

import logging
import re
import urllib.parse
from typing import Any, Dict

import yaml
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import RedirectResponse
from pydantic import ValidationError

from management_api.core.dependencies import get_config_files, get_settings
from management_api.domain.models import ManagementSettings, RepoConfig
from management_api.storage.config_files import ConfigFiles
from management_api.storage.storage import StorageError

logger = logging.getLogger(__name__)
router = APIRouter()

_NAME_RE = re.compile(r"[A-Za-z0-9_][A-Za-z0-9._-]*")
_WHOLE_BODY_RE = re.compile(r"repo=(?P<repo>[^&]*)&config=(?P<config>.*)", re.DOTALL)


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def _decode_form(body: str) -> Dict[str, str]:
    """
    Decode the `repo`/`config` form.

    Besides regular form encoding, a body that was URL-encoded as a whole
    (separators included) is accepted as well.
    """
    fields = dict(urllib.parse.parse_qsl(body, keep_blank_values=True))
    if "repo" in fields and "config" in fields:
        return fields
    match = _WHOLE_BODY_RE.fullmatch(urllib.parse.unquote_plus(body))
    if match:
        return match.groupdict()
    return fields


def _parse_config(text: str) -> Dict[str, Any]:
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise _bad_request(f"Config is not valid YAML: {exc}")
    if not isinstance(document, dict):
        raise _bad_request("Config must be a YAML mapping")
    try:
        RepoConfig.model_validate(document)
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise _bad_request(f"Invalid repository config at '{location}': {first.get('msg')}")
    return document


def _replace_fields(existing: Dict[str, Any], incoming: Dict[str, Any]) -> Dict[str, Any]:
    """Update `existing` with `incoming`, field by field inside the `repo` mapping."""
    document = {**existing, **incoming}
    old_repo = existing.get("repo")
    if isinstance(old_repo, dict):
        document["repo"] = {**old_repo, **incoming["repo"]}
    return document


@router.post("/api/repos/{user}")
async def update_repo_config(
    user: str,
    request: Request,
    configs: ConfigFiles = Depends(get_config_files),
    settings: ManagementSettings = Depends(get_settings),
):
    """
    Create or update the YAML config of a user's repository.

    Any existing `.yaml` or `.yml` variant is replaced by `{user}/{repo}.yaml`.
    Responds with 302 Found pointing at the dashboard page of the repository.
    """
    try:
        body = (await request.body()).decode("utf-8")
    except UnicodeDecodeError:
        raise _bad_request("Form body must be UTF-8")

    fields = _decode_form(body)
    repo = fields.get("repo", "").strip()
    config_text = fields.get("config")
    if not repo or config_text is None:
        raise _bad_request("Both 'repo' and 'config' form fields are required")
    if not _NAME_RE.fullmatch(user) or not _NAME_RE.fullmatch(repo):
        raise _bad_request("Invalid user or repository name")

    incoming = _parse_config(config_text)
    name = f"{user}/{repo}"

    try:
        existing = await configs.read(name)
    except StorageError as exc:
        logger.warning(f"Overwriting unreadable config of {name}: {exc}")
        existing = None

    document = _replace_fields(existing, incoming) if existing else incoming
    await configs.delete(name)
    key = await configs.save(name, document)
    logger.info(f"Saved repository config {key} (type={document['repo'].get('type')})")

    return RedirectResponse(
        url=f"{settings.dashboard_prefix}/{user}/{repo}",
        status_code=status.HTTP_302_FOUND,
    )
