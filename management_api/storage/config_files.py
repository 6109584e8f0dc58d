from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import yaml

from management_api.storage.storage import Storage, StorageError

logger = logging.getLogger(__name__)

YAML_EXTENSIONS = (".yaml", ".yml")


class ConfigFiles:
    """
    YAML configuration files kept in a key/value storage.

    Configs are addressed by their key without extension; both `.yaml` and
    `.yml` variants are recognized when reading, writes always produce
    `.yaml`.
    """

    def __init__(self, storage: Storage):
        self.storage = storage

    async def find(self, name: str) -> Optional[str]:
        """Return the storage key of the existing variant of `name`, if any."""
        for ext in YAML_EXTENSIONS:
            key = f"{name}{ext}"
            if await self.storage.exists(key):
                return key
        return None

    async def exists(self, name: str) -> bool:
        return await self.find(name) is not None

    async def read(self, name: str) -> Optional[Dict[str, Any]]:
        """
        Load the config `name` as a mapping.

        Returns None if no variant exists. An empty document yields {}.
        """
        key = await self.find(name)
        if key is None:
            return None
        content = await self.storage.value(key)
        try:
            document = yaml.safe_load(content.decode("utf-8"))
        except (UnicodeDecodeError, yaml.YAMLError) as exc:
            raise StorageError(f"Config '{key}' is not valid YAML: {exc}") from exc
        if document is None:
            return {}
        if not isinstance(document, dict):
            raise StorageError(f"Config '{key}' is not a YAML mapping")
        return document

    async def save(self, name: str, document: Dict[str, Any]) -> str:
        """Write `document` to `<name>.yaml` and return the key."""
        key = f"{name}{YAML_EXTENSIONS[0]}"
        text = yaml.safe_dump(document, default_flow_style=False, sort_keys=False)
        await self.storage.save(key, text.encode("utf-8"))
        return key

    async def delete(self, name: str) -> None:
        """Remove every variant of `name`."""
        for ext in YAML_EXTENSIONS:
            key = f"{name}{ext}"
            if await self.storage.exists(key):
                await self.storage.delete(key)
                logger.debug(f"Removed config {key}")

    async def names(self, prefix: str = "") -> List[str]:
        """Names (keys without extension) of all configs directly below `prefix`."""
        root = prefix.strip("/")
        result: List[str] = []
        for key in await self.storage.list(root):
            relative = key[len(root) + 1:] if root else key
            if "/" in relative:
                continue
            for ext in YAML_EXTENSIONS:
                if key.endswith(ext):
                    name = key[: -len(ext)]
                    if name not in result:
                        result.append(name)
                    break
        return sorted(result)
