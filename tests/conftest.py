"""Test configuration and fixtures."""

from collections.abc import Callable, Generator

import pytest
from fastapi.testclient import TestClient

from management_api.core import dependencies
from management_api.domain.models import ManagementSettings
from management_api.domain.permissions import PermissionMergeEngine
from management_api.main import app
from management_api.storage.config_files import ConfigFiles
from management_api.storage.permission_store import InMemoryPermissionStore
from management_api.storage.storage import InMemoryStorage


@pytest.fixture
def settings() -> ManagementSettings:
    return ManagementSettings()


@pytest.fixture
def store() -> InMemoryPermissionStore:
    return InMemoryPermissionStore("maven")


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def client(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path,
    settings: ManagementSettings,
    store: InMemoryPermissionStore,
    storage: InMemoryStorage,
) -> Generator[TestClient, None, None]:
    """Test client wired to in-memory stores."""
    monkeypatch.setenv(dependencies.DATA_ROOT_ENV_VAR, str(tmp_path))
    monkeypatch.setattr(dependencies, "_settings", settings)
    engine = PermissionMergeEngine(store, settings)
    configs = ConfigFiles(storage)

    app.dependency_overrides[dependencies.get_settings] = lambda: settings
    app.dependency_overrides[dependencies.get_permission_store] = lambda: store
    app.dependency_overrides[dependencies.get_merge_engine] = lambda: engine
    app.dependency_overrides[dependencies.get_config_files] = lambda: configs
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def _permission_json(readers: bool) -> str:
    return "\n".join(
        [
            "{",
            ' "name": "java-developers",',
            ' "repo": {',
            '    "include-patterns": ["**", "maven/**"],',
            '    "exclude-patterns": [""],',
            '    "repositories": ["local-rep1", "remote-rep1", "virtual-rep2"],',
            '    "actions": {',
            '          "users" : {',
            '            "bob": ["r","write","manage"],',
            '            "alice" : ["w", "read"],',
            '            "john" : ["admin"]',
            "          },",
            '          "groups" : {',
            '            "readers" : ["read"],' if readers else "",
            '            "dev-leads" : ["r","write"]',
            "          }",
            "    }",
            "  },",
            '"build": {',
            '    "include-patterns": [""],',
            '    "exclude-patterns": [""],',
            '    "repositories": ["artifactory-build-info"],',
            '    "actions": {',
            '          "users" : {',
            '            "bob": ["read","manage"],',
            '            "alice" : ["write"]',
            "          },",
            '          "groups" : {',
            '            "dev-leads" : ["manage","read","write","annotate","delete"],',
            '            "readers" : ["read"]',
            "          }",
            "    }",
            "  }",
            "}",
        ]
    )


@pytest.fixture
def permission_json() -> Callable[[bool], str]:
    """Artifactory permission target for the 'maven' repository."""
    return _permission_json
