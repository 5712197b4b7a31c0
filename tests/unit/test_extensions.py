"""Unit tests for feature declarations, activation and manifest lookup."""

from __future__ import annotations

import orjson
import pytest

from wikifarm_config.domain.override_document import OverrideDocument
from wikifarm_config.extensions import ExtensionActivation, ExtensionManifestIndex, ExtensionRegistry


pytestmark = pytest.mark.unit


@pytest.fixture
def registry() -> ExtensionRegistry:
    return ExtensionRegistry.from_mapping(
        {
            "cite": {"name": "Cite"},
            "semanticmediawiki": {"name": "Semantic MediaWiki", "requires": ["cite"]},
            "echo": {"name": "Echo"},
        }
    )


def make_activation(registry, extensions, *, disabled=(), cached=None) -> ExtensionActivation:
    document = OverrideDocument(extensions=extensions) if extensions is not None else None
    return ExtensionActivation(lambda: registry, lambda: document, disabled=disabled, cached=cached)


class TestRegistry:
    def test_declared_enabled_minus_disabled(self, registry):
        assert registry.resolve(["echo", "cite", "unknown"]) == ("Cite", "Echo")
        assert registry.resolve(["echo", "cite"], disabled=["echo"]) == ("Cite",)

    def test_disabled_by_display_name(self, registry):
        assert registry.resolve(["semanticmediawiki"], disabled=["Semantic MediaWiki"]) == ()

    def test_missing_registry_file(self, tmp_path):
        registry = ExtensionRegistry.from_json_file(tmp_path / "extensions.json")

        assert len(registry) == 0
        assert registry.resolve(["cite"]) == ()

    def test_from_json_file(self, tmp_path):
        path = tmp_path / "extensions.json"
        path.write_bytes(orjson.dumps({"cite": {"name": "Cite"}}))

        registry = ExtensionRegistry.from_json_file(path)

        assert "cite" in registry


class TestActivation:
    def test_no_document_means_no_features(self, registry):
        activation = make_activation(registry, None)

        assert activation.active_features() == ()
        assert activation.is_active("Cite") is False

    def test_queries(self, registry):
        activation = make_activation(registry, ["cite", "echo"])

        assert activation.is_active("Cite")
        assert not activation.is_active("Semantic MediaWiki")
        assert activation.any_active("Semantic MediaWiki", "Echo")
        assert not activation.any_active("Semantic MediaWiki")
        assert activation.all_active("Cite", "Echo")
        assert not activation.all_active("Cite", "Semantic MediaWiki")

    def test_process_wide_disable(self, registry):
        activation = make_activation(registry, ["cite", "echo"], disabled=frozenset({"echo"}))

        assert activation.active_features() == ("Cite",)

    def test_cached_list_short_circuits(self, registry):
        def explode():
            raise AssertionError("document must not be loaded")

        activation = ExtensionActivation(lambda: registry, explode, cached=lambda: ("Echo",))

        assert activation.active_features() == ("Echo",)

    def test_memoized(self, registry):
        loads = []

        def load_document():
            loads.append(1)
            return OverrideDocument(extensions=["cite"])

        activation = ExtensionActivation(lambda: registry, load_document)
        activation.active_features()
        activation.is_active("Cite")

        assert len(loads) == 1


class TestManifestIndex:
    @pytest.fixture
    def runtime(self, tmp_path):
        root = tmp_path / "mediawiki" / "1.40"
        for relative, name in (
            ("extensions/Cite/extension.json", "Cite"),
            ("extensions/Echo/extension.json", "Echo"),
            ("skins/Vector/skin.json", "Vector"),
        ):
            path = root / relative
            path.parent.mkdir(parents=True)
            path.write_bytes(orjson.dumps({"name": name}))
        (root / "extensions" / "Broken").mkdir()
        (root / "extensions" / "Broken" / "extension.json").write_text("{oops")
        return tmp_path / "mediawiki"

    def test_build_and_persist(self, tmp_path, runtime):
        index = ExtensionManifestIndex(tmp_path / "cache", lambda version: runtime / version)

        built = index.load("1.40")

        assert set(built) == {"Cite", "Echo", "Vector"}
        assert index.index_path("1.40").exists()

    def test_manifest_paths(self, tmp_path, runtime):
        index = ExtensionManifestIndex(tmp_path / "cache", lambda version: runtime / version)

        paths = index.manifest_paths("1.40", ["Cite", "Vector", "NotInstalled"])

        assert [path.name for path in paths] == ["extension.json", "skin.json"]

    def test_persisted_index_is_reused(self, tmp_path, runtime):
        index = ExtensionManifestIndex(tmp_path / "cache", lambda version: runtime / version)
        index.index_path("1.40").parent.mkdir(parents=True)
        index.index_path("1.40").write_bytes(orjson.dumps({"Legacy": "/old/Legacy.php"}))

        assert index.load("1.40") == {"Legacy": "/old/Legacy.php"}
        # non-JSON manifests are not queued
        assert index.manifest_paths("1.40", ["Legacy"]) == []
