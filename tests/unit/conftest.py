"""Conftest for unit tests - unit marker and an on-disk farm fixture."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import orjson
import pytest

from wikifarm_config.adapters.list_file_store import ListFileStore
from wikifarm_config.config import Settings
from wikifarm_config.context import RequestContext
from wikifarm_config.directory import TenantDirectory
from wikifarm_config.farm_config import FarmDeployment


def pytest_collection_modifyitems(config, items):
    """Automatically mark all tests in the unit directory as unit tests."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)


FARMS: dict[str, Any] = {
    "default_farm": "wikitide",
    "farms": [
        {
            "name": "wikitide",
            "db_suffix": "wikitide",
            "domain": "wikitide.org",
            "default_server": "wikitide.org",
            "global_database": "wtglobal",
            "central_wiki": "metawikitide",
            "versions": {"stable": "1.40", "beta": "1.41"},
            "beta_host": "test1.wikitide.net",
        },
        {
            "name": "wikiforge",
            "db_suffix": "wiki",
            "domain": "wikiforge.net",
            "default_server": "wikiforge.net",
            "versions": {"stable": "1.40"},
        },
    ],
}

BASE_SETTINGS: dict[str, Any] = {
    "wgLogo": {"default": "/logo.png", "wikitide": "/tide.png", "metawikitide": "/meta.png"},
    "wgServerName": {"default": "$lang.wikitide.org"},
    "wgGroupPermissions": {"default": {"*": {"read": True}}, "+private": {"*": {"read": False}}},
    "wgEnableBeta": {"1.41": True},
    "wgCiteOption": {"ext-Cite": "on"},
    "wgOnlyForBar": {"barwikitide": 1},
}

EXTENSIONS: dict[str, Any] = {
    "cite": {"name": "Cite"},
    "semanticmediawiki": {"name": "Semantic MediaWiki"},
    "echo": {"name": "Echo"},
}

DATABASES_WIKITIDE: dict[str, Any] = {
    "combi": {
        "metawikitide": {"s": "Meta", "c": "c1", "v": "1.40"},
        "foowikitide": {"s": "Foo Wiki", "c": "c2", "v": "1.41"},
        "barwikitide": {"s": "Bar", "c": "c3", "v": "1.40", "u": "https://bar.example.org"},
        "nositewikitide": {"c": "c1"},
    },
}

DELETED_WIKITIDE: dict[str, Any] = {
    "deleted": "databases",
    "databases": {"oldwikitide": {"s": "Old", "c": "c1"}},
}

DATABASES_WIKIFORGE: dict[str, Any] = {
    "combi": {"testwiki": {"s": "Test", "c": "c4", "v": "1.40"}},
}

FOO_OVERRIDES: dict[str, Any] = {
    "core": {"wgLanguageCode": "de"},
    "states": {"private": True, "closed": False, "inactive": "exempt"},
    "settings": {"wgLogo": "/custom.png"},
    "namespaces": {
        "Project": {
            "id": 4,
            "searchable": True,
            "subpages": True,
            "contentmodel": "wikitext",
            "content": False,
            "protection": "",
            "aliases": ["FW"],
        },
    },
    "permissions": [],
    "extensions": ["cite", "semanticmediawiki", "notdeclared"],
}


def write_json(path: Path, payload: Any) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(orjson.dumps(payload))
    return path


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep process environment and any stray .env file out of Settings."""
    for name in ("WIKI_VERSION", "DATABASE_CLUSTERS_MAINTENANCE", "DISABLED_EXTENSIONS", "NODE_NAME"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def farm_root(tmp_path) -> Path:
    """Write a two-farm deployment with list files and one override document."""
    config_dir = tmp_path / "config"
    cache_dir = tmp_path / "cache"
    write_json(config_dir / "farms.json", FARMS)
    write_json(config_dir / "settings.json", BASE_SETTINGS)
    write_json(config_dir / "extensions.json", EXTENSIONS)
    write_json(cache_dir / "databases-wikitide.json", DATABASES_WIKITIDE)
    write_json(cache_dir / "deleted-wikitide.json", DELETED_WIKITIDE)
    write_json(cache_dir / "databases-wikiforge.json", DATABASES_WIKIFORGE)
    write_json(cache_dir / "foowikitide.json", FOO_OVERRIDES)
    return tmp_path


def build_settings(root: Path, **overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "config_directory": root / "config",
        "cache_directory": root / "cache",
        "mediawiki_directory": root / "mediawiki",
        "node_name": "mw1",
        "revalidate_delay_seconds": 0,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def make_settings(farm_root):
    """Factory for Settings rooted at the farm fixture, with overrides."""

    def _make(**overrides: Any) -> Settings:
        return build_settings(farm_root, **overrides)

    return _make


@pytest.fixture
def settings(make_settings) -> Settings:
    return make_settings()


@pytest.fixture
def deployment() -> FarmDeployment:
    return FarmDeployment.model_validate(FARMS)


@pytest.fixture
def make_directory(settings, deployment):
    """Factory for a TenantDirectory over the farm fixture's cache."""

    def _make(context: RequestContext, **kwargs: Any) -> TenantDirectory:
        store = ListFileStore(settings.cache_directory, node_name=settings.node_name)
        kwargs.setdefault("node_name", settings.node_name)
        return TenantDirectory(store, deployment, context, **kwargs)

    return _make
