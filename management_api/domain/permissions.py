"""
Merging of Artifactory permission targets into stored repository permissions.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Dict, Optional

from management_api.domain.errors import MergeError
from management_api.domain.models import (
    CanonicalAction,
    ManagementSettings,
    PermissionSection,
    PermissionTarget,
    RepoPermissions,
)
from management_api.storage.permission_store import PermissionStore
from management_api.storage.storage import StorageError

logger = logging.getLogger(__name__)

GROUP_PREFIX = "/"


def group_principal(group: str) -> str:
    """Stored principal name of a group: 'dev-leads' -> '/dev-leads'."""
    return group if group.startswith(GROUP_PREFIX) else f"{GROUP_PREFIX}{group}"


def apply_section(
    record: RepoPermissions,
    section: PermissionSection,
    readers_group: str,
) -> RepoPermissions:
    """
    Return a copy of `record` with `section` merged in.

    Patterns are added once in first-seen order, principal entries are
    replaced as a whole, and `readers_group` is created with read access
    if anyone can read and the group does not exist yet.
    """
    merged = record.model_copy(deep=True)

    for pattern in section.include_patterns:
        if pattern and pattern not in merged.include_patterns:
            merged.include_patterns.append(pattern)
    for pattern in section.exclude_patterns:
        if pattern and pattern not in merged.exclude_patterns:
            merged.exclude_patterns.append(pattern)

    for user, actions in section.users.items():
        merged.put(user, actions)
    for group, actions in section.groups.items():
        merged.put(group_principal(group), actions)

    if merged.entry(readers_group) is None and any(
        CanonicalAction.READ in entry.actions for entry in merged.entries
    ):
        merged.put(readers_group, [CanonicalAction.READ])

    return merged


class PermissionMergeEngine:
    """
    Applies permission targets to a PermissionStore.

    Each repository has its own asyncio.Lock, so the read-modify-write of
    one repository never interleaves with another request for the same
    repository, while different repositories are merged concurrently.
    A lock is dropped once no request holds or waits for it.
    """

    def __init__(self, store: PermissionStore, settings: Optional[ManagementSettings] = None):
        self.store = store
        self.settings = settings or ManagementSettings()
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}

    @asynccontextmanager
    async def _repository_lock(self, repo: str):
        if repo not in self._locks:
            self._locks[repo] = asyncio.Lock()
        self._waiters[repo] = self._waiters.get(repo, 0) + 1
        try:
            async with self._locks[repo]:
                yield
        finally:
            self._waiters[repo] -= 1
            if not self._waiters[repo]:
                del self._waiters[repo]
                self._locks.pop(repo, None)

    async def merge(self, repo: str, target: PermissionTarget) -> RepoPermissions:
        """
        Merge the `repo` section of `target` into the permissions of `repo`.

        The new state is computed in memory and saved with a single write.
        The `build` section describes build-info scope and is not applied
        to the repository. Raises MergeError if the store fails or, when
        `require_existing_repository` is set, if `repo` is unknown.
        """
        async with self._repository_lock(repo):
            try:
                if self.settings.require_existing_repository and not await self.store.exists(repo):
                    raise MergeError(f"Repository '{repo}' does not exist")
                current = await self.store.load(repo)
                merged = apply_section(current, target.repo, self.settings.readers_group)
                if merged == current:
                    logger.debug(f"Permissions of '{repo}' already up to date")
                    return merged
                await self.store.save(repo, merged)
            except StorageError as exc:
                raise MergeError(f"Failed to store permissions of '{repo}': {exc}") from exc

        logger.info(
            f"Merged permission target '{target.name}' into '{repo}': "
            f"{len(merged.entries)} principals, {len(merged.include_patterns)} include patterns"
        )
        return merged
