from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List

from management_api.domain.actions import normalize_actions
from management_api.domain.errors import UnknownActionError
from management_api.domain.models import CanonicalAction, PermissionEntry, RepoPermissions
from management_api.storage.config_files import ConfigFiles
from management_api.storage.storage import StorageError

logger = logging.getLogger(__name__)


class PermissionStore(ABC):
    """
    Persistence of per-repository permission records.

    Implementations provide `load`/`save` of whole records; the fine-grained
    accessors below are built on top of them. Callers that need
    read-modify-write atomicity serialize access per repository themselves.
    """

    @abstractmethod
    async def repositories(self) -> List[str]:
        """Names of all repositories with stored permissions."""
        pass

    @abstractmethod
    async def exists(self, repo: str) -> bool:
        """Whether the store knows `repo` at all."""
        pass

    @abstractmethod
    async def load(self, repo: str) -> RepoPermissions:
        """Return a copy of the record of `repo` (empty if none is stored)."""
        pass

    @abstractmethod
    async def save(self, repo: str, record: RepoPermissions) -> None:
        """Persist `record` as the complete permission state of `repo`."""
        pass

    async def permissions(self, repo: str) -> List[PermissionEntry]:
        return (await self.load(repo)).entries

    async def permissions_for(self, repo: str, principal: str) -> List[CanonicalAction]:
        entry = (await self.load(repo)).entry(principal)
        return list(entry.actions) if entry is not None else []

    async def patterns(self, repo: str) -> List[str]:
        return (await self.load(repo)).include_patterns

    async def exclude_patterns(self, repo: str) -> List[str]:
        return (await self.load(repo)).exclude_patterns

    async def write(self, repo: str, principal: str, actions: Iterable[CanonicalAction]) -> None:
        record = await self.load(repo)
        record.put(principal, list(actions))
        await self.save(repo, record)

    async def write_pattern(self, repo: str, pattern: str) -> None:
        record = await self.load(repo)
        if pattern not in record.include_patterns:
            record.include_patterns.append(pattern)
            await self.save(repo, record)

    async def write_exclude_pattern(self, repo: str, pattern: str) -> None:
        record = await self.load(repo)
        if pattern not in record.exclude_patterns:
            record.exclude_patterns.append(pattern)
            await self.save(repo, record)


class InMemoryPermissionStore(PermissionStore):
    """Permission records kept in a dictionary."""

    def __init__(self, *repos: str):
        self._records: Dict[str, RepoPermissions] = {repo: RepoPermissions() for repo in repos}
        self._lock = asyncio.Lock()

    async def repositories(self) -> List[str]:
        return sorted(self._records)

    async def exists(self, repo: str) -> bool:
        return repo in self._records

    async def load(self, repo: str) -> RepoPermissions:
        record = self._records.get(repo)
        return record.model_copy(deep=True) if record is not None else RepoPermissions()

    async def save(self, repo: str, record: RepoPermissions) -> None:
        async with self._lock:
            self._records[repo] = record.model_copy(deep=True)


class YamlPermissionStore(PermissionStore):
    """
    Permission records stored inside repository YAML configs.

    The `repo` mapping of `<namespace>/<repo>.yaml` carries:

        permissions:                 principal -> list of actions
        permissions_include_patterns: list of include patterns
        permissions_exclude_patterns: list of exclude patterns

    Other keys of the config are preserved on every write.
    """

    PERMISSIONS = "permissions"
    INCLUDE_PATTERNS = "permissions_include_patterns"
    EXCLUDE_PATTERNS = "permissions_exclude_patterns"

    def __init__(self, configs: ConfigFiles, namespace: str = ""):
        self.configs = configs
        self.namespace = namespace.strip("/")

    def _name(self, repo: str) -> str:
        return f"{self.namespace}/{repo}" if self.namespace else repo

    async def repositories(self) -> List[str]:
        result: List[str] = []
        for name in await self.configs.names(self.namespace):
            document = await self.configs.read(name)
            settings = (document or {}).get("repo")
            if isinstance(settings, dict) and (
                self.PERMISSIONS in settings or self.INCLUDE_PATTERNS in settings
            ):
                result.append(name[len(self.namespace) + 1:] if self.namespace else name)
        return result

    async def exists(self, repo: str) -> bool:
        return await self.configs.exists(self._name(repo))

    async def load(self, repo: str) -> RepoPermissions:
        document = await self.configs.read(self._name(repo))
        settings = (document or {}).get("repo") or {}
        if not isinstance(settings, dict):
            raise StorageError(f"Config of '{repo}' has no 'repo' mapping")
        return RepoPermissions(
            entries=[
                PermissionEntry(username=str(principal), actions=self._actions(repo, names))
                for principal, names in (settings.get(self.PERMISSIONS) or {}).items()
            ],
            include_patterns=[str(p) for p in settings.get(self.INCLUDE_PATTERNS) or []],
            exclude_patterns=[str(p) for p in settings.get(self.EXCLUDE_PATTERNS) or []],
        )

    async def save(self, repo: str, record: RepoPermissions) -> None:
        name = self._name(repo)
        previous_key = await self.configs.find(name)
        document: Dict[str, Any] = await self.configs.read(name) or {}
        settings = document.get("repo")
        if not isinstance(settings, dict):
            settings = {}
            document["repo"] = settings

        settings[self.PERMISSIONS] = {
            entry.username: [action.value for action in entry.actions] for entry in record.entries
        }
        settings[self.INCLUDE_PATTERNS] = list(record.include_patterns)
        if record.exclude_patterns:
            settings[self.EXCLUDE_PATTERNS] = list(record.exclude_patterns)
        else:
            settings.pop(self.EXCLUDE_PATTERNS, None)

        key = await self.configs.save(name, document)
        if previous_key is not None and previous_key != key:
            await self.configs.storage.delete(previous_key)
        logger.debug(f"Stored permissions of '{repo}' in {key}")

    @staticmethod
    def _actions(repo: str, names: Any) -> List[CanonicalAction]:
        if not isinstance(names, list):
            raise StorageError(f"Permissions of '{repo}' must be lists of actions")
        try:
            # '*' is the wildcard spelling used by hand-written configs.
            return normalize_actions("admin" if name == "*" else str(name) for name in names)
        except UnknownActionError as exc:
            raise StorageError(f"Config of '{repo}': {exc}") from exc
