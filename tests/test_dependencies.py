import json

import pytest

from management_api.core import dependencies
from management_api.domain.models import ManagementSettings
from management_api.storage.permission_store import YamlPermissionStore


@pytest.fixture
def fresh_dependencies(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """Point the singletons at an empty data directory."""
    monkeypatch.setenv(dependencies.DATA_ROOT_ENV_VAR, str(tmp_path))
    for name in ("_settings", "_storage", "_config_files", "_permission_store", "_merge_engine"):
        monkeypatch.setattr(dependencies, name, None)
    return tmp_path


def test_permissions_live_in_their_own_config_folder(fresh_dependencies):
    store = dependencies.get_permission_store()

    assert ManagementSettings().permissions_namespace == "_permissions"
    assert isinstance(store, YamlPermissionStore)
    assert store.namespace == "_permissions"
    saved = json.loads((fresh_dependencies / dependencies.SETTINGS_FILE).read_text(encoding="utf-8"))
    assert saved["permissions_namespace"] == "_permissions"


def test_settings_file_overrides_defaults(fresh_dependencies):
    (fresh_dependencies / dependencies.SETTINGS_FILE).write_text(
        json.dumps({"permissions_namespace": "", "strict_patterns": True}), encoding="utf-8"
    )

    settings = dependencies.get_settings()

    assert settings.permissions_namespace == ""
    assert settings.strict_patterns
    assert settings.readers_group == "/readers"
    assert dependencies.get_merge_engine().store.namespace == ""
