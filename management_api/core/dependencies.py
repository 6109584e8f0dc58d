from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from management_api.domain.models import ManagementSettings
from management_api.domain.permissions import PermissionMergeEngine
from management_api.storage.config_files import ConfigFiles
from management_api.storage.permission_store import PermissionStore, YamlPermissionStore
from management_api.storage.storage import FileSystemStorage, Storage

logger = logging.getLogger(__name__)

DATA_ROOT_ENV_VAR = "MANAGEMENT_API_DATA_DIR"
SETTINGS_FILE = "management.json"
_REPO_ROOT = Path(__file__).resolve().parents[2]
_DEFAULT_DATA_DIR = _REPO_ROOT / "data"

_settings: Optional[ManagementSettings] = None
_storage: Optional[Storage] = None
_config_files: Optional[ConfigFiles] = None
_permission_store: Optional[PermissionStore] = None
_merge_engine: Optional[PermissionMergeEngine] = None


def get_data_dir() -> Path:
    """
    Determine the data directory path.

    Priority:
    1. Environment variable MANAGEMENT_API_DATA_DIR
    2. '<project root>/data'
    """
    env_path = os.environ.get(DATA_ROOT_ENV_VAR)
    if env_path:
        d = Path(env_path).expanduser()
    else:
        d = _DEFAULT_DATA_DIR
    d.mkdir(parents=True, exist_ok=True)
    return d


def load_settings(data_dir: Path) -> ManagementSettings:
    """
    Load management.json, merging with defaults for any missing fields,
    and write it back so any new fields are persisted.
    """
    path = data_dir / SETTINGS_FILE
    settings = ManagementSettings()
    if path.exists():
        try:
            settings = ManagementSettings(**json.loads(path.read_text(encoding="utf-8")))
        except (json.JSONDecodeError, ValidationError) as exc:
            logger.warning(f"Ignoring invalid {path}: {exc}")
    path.write_text(settings.model_dump_json(indent=2), encoding="utf-8")
    return settings


def get_settings() -> ManagementSettings:
    global _settings
    if _settings is None:
        _settings = load_settings(get_data_dir())
    return _settings


def get_storage() -> Storage:
    global _storage
    if _storage is None:
        _storage = FileSystemStorage(get_data_dir() / "configs")
    return _storage


def get_config_files() -> ConfigFiles:
    global _config_files
    if _config_files is None:
        _config_files = ConfigFiles(get_storage())
    return _config_files


def get_permission_store() -> PermissionStore:
    global _permission_store
    if _permission_store is None:
        _permission_store = YamlPermissionStore(
            get_config_files(), namespace=get_settings().permissions_namespace
        )
    return _permission_store


def get_merge_engine() -> PermissionMergeEngine:
    global _merge_engine
    if _merge_engine is None:
        _merge_engine = PermissionMergeEngine(get_permission_store(), get_settings())
    return _merge_engine
