"""
Pydantic models for the repository management API.

This module defines the data models used throughout the application:
- Canonical permission actions
- Artifactory-style permission-target payloads (raw and normalized)
- Persisted per-repository permission records
- Repository YAML configuration
- Service settings

All models use Pydantic for validation, serialization, and type safety.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Permission actions
# ---------------------------------------------------------------------------


class CanonicalAction(str, Enum):
    """
    Internal permission verbs.

    Raw Artifactory tokens (`r`, `write`, `admin`, ...) are normalized onto
    this closed set before they reach the permission store.
    """

    READ = "read"
    WRITE = "write"
    MANAGE = "manage"
    DELETE = "delete"
    ANNOTATE = "annotate"


# ---------------------------------------------------------------------------
# Artifactory permission-target payload (as received)
# ---------------------------------------------------------------------------
# These models mirror the JSON dialect of the Artifactory permission target
# API (kebab-case field names). Actions are still raw strings here.


class RawActions(BaseModel):
    """Per-principal raw action lists of one permission section."""

    model_config = ConfigDict(extra="ignore")

    users: Dict[str, List[str]] = Field(
        default_factory=dict,
        description="Username -> list of raw action tokens.",
    )
    groups: Dict[str, List[str]] = Field(
        default_factory=dict,
        description="Group name -> list of raw action tokens.",
    )


class RawPermissionSection(BaseModel):
    """
    One scope (`repo` or `build`) of an Artifactory permission target.

    An absent `include-patterns` list defaults to `**`, which is what
    Artifactory assumes as well.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    include_patterns: List[str] = Field(
        default_factory=lambda: ["**"],
        alias="include-patterns",
        description="Path patterns the permissions apply to.",
    )
    exclude_patterns: List[str] = Field(
        default_factory=list,
        alias="exclude-patterns",
        description="Path patterns excluded from the permissions. [''] means none.",
    )
    repositories: List[str] = Field(
        default_factory=list,
        description="Informational list of repositories the target applies to.",
    )
    actions: RawActions = Field(
        description="Raw per-user and per-group action lists.",
    )


class RawPermissionTarget(BaseModel):
    """Top-level permission-target payload."""

    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = Field(
        default=None,
        description="Informational name of the permission target.",
    )
    repo: RawPermissionSection = Field(
        description="Repository-scoped permissions.",
    )
    build: Optional[RawPermissionSection] = Field(
        default=None,
        description="Build-info scoped permissions.",
    )


# ---------------------------------------------------------------------------
# Normalized permission target (constructed per request)
# ---------------------------------------------------------------------------


class PermissionSection(BaseModel):
    """A permission section whose actions have been normalized."""

    include_patterns: List[str] = Field(default_factory=list)
    exclude_patterns: List[str] = Field(default_factory=list)
    repositories: List[str] = Field(default_factory=list)
    users: Dict[str, List[CanonicalAction]] = Field(default_factory=dict)
    groups: Dict[str, List[CanonicalAction]] = Field(default_factory=dict)


class PermissionTarget(BaseModel):
    """
    A parsed permission-target request.

    Lives for the duration of a single request only.
    """

    name: Optional[str] = None
    repo: PermissionSection
    build: Optional[PermissionSection] = None

    def sections(self) -> List[PermissionSection]:
        """All sections present in the payload, `repo` first."""
        result = [self.repo]
        if self.build is not None:
            result.append(self.build)
        return result


# ---------------------------------------------------------------------------
# Persisted permission records
# ---------------------------------------------------------------------------


class PermissionEntry(BaseModel):
    """
    Actions held by one principal on one repository.

    Group principals are stored with a leading '/', e.g. '/readers'.
    """

    username: str = Field(description="User name or '/'-prefixed group name.")
    actions: List[CanonicalAction] = Field(
        default_factory=list,
        description="Canonical actions held by the principal.",
    )


class RepoPermissions(BaseModel):
    """
    Complete permission state of a single repository.

    Created on first write and mutated by subsequent merges; never deleted
    by the management API.
    """

    entries: List[PermissionEntry] = Field(
        default_factory=list,
        description="Principal entries in insertion order.",
    )
    include_patterns: List[str] = Field(
        default_factory=list,
        description="Include path patterns in first-seen order.",
    )
    exclude_patterns: List[str] = Field(
        default_factory=list,
        description="Exclude path patterns in first-seen order.",
    )

    def entry(self, principal: str) -> Optional[PermissionEntry]:
        for item in self.entries:
            if item.username == principal:
                return item
        return None

    def put(self, principal: str, actions: List[CanonicalAction]) -> None:
        """Replace (not union) the actions of `principal`."""
        existing = self.entry(principal)
        if existing is None:
            self.entries.append(PermissionEntry(username=principal, actions=list(actions)))
        else:
            existing.actions = list(actions)


# ---------------------------------------------------------------------------
# Repository YAML configuration
# ---------------------------------------------------------------------------


class RepoSettings(BaseModel):
    """
    The `repo` mapping of a repository YAML config.

    Only `type` is required; any additional keys are preserved untouched.
    """

    model_config = ConfigDict(extra="allow")

    type: str = Field(description="Repository type, e.g. 'maven', 'docker', 'pypi'.")
    permissions: Optional[Dict[str, List[str]]] = Field(
        default=None,
        description="Principal -> list of action names.",
    )
    storage: Optional[Union[str, Dict[str, Any]]] = Field(
        default=None,
        description="Storage alias name (e.g. 'default') or inline storage mapping.",
    )


class RepoConfig(BaseModel):
    """Root object of a repository YAML config file."""

    model_config = ConfigDict(extra="allow")

    repo: RepoSettings


# ---------------------------------------------------------------------------
# Service settings
# ---------------------------------------------------------------------------


class ManagementSettings(BaseModel):
    """
    Runtime settings of the management API.

    Persisted at: <DATA_DIR>/management.json
    """

    readers_group: str = Field(
        default="/readers",
        description="Group implicitly granted read access once any principal can read.",
    )
    strict_patterns: bool = Field(
        default=False,
        description="If True, only '**' and '<repo>/**' are accepted as path patterns.",
    )
    require_existing_repository: bool = Field(
        default=False,
        description="If True, permissions can only be merged into repositories the store already knows.",
    )
    permissions_namespace: str = Field(
        default="_permissions",
        description="Config folder holding the repository configs that carry permissions ('' for the root).",
    )
    dashboard_prefix: str = Field(
        default="/dashboard",
        description="URL prefix of the dashboard that repository updates redirect to.",
    )
    log_level: str = Field(
        default="INFO",
        description="Root logging level.",
    )
