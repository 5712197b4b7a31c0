"""Unit tests for configuration tag computation."""

import pytest

from wikifarm_config.adapters.override_store import OverrideDocumentStore
from wikifarm_config.context import RequestContext
from wikifarm_config.tags import TagResolver, build_tags, extension_tag, state_tags


pytestmark = pytest.mark.unit


class TestBuildTags:
    def test_order_is_farm_version_states_features(self):
        tags = build_tags("wikitide", "1.41", {"private": True, "closed": True}, ["Cite", "Echo"])

        assert tags == ("wikitide", "1.41", "private", "closed", "ext-Cite", "ext-Echo")

    def test_exempt_and_falsy_states_are_not_tags(self):
        states = {"private": False, "closed": None, "inactive": "exempt", "locked": 1}

        assert state_tags(states) == ["locked"]

    def test_feature_tag_removes_whitespace(self):
        assert extension_tag("Semantic MediaWiki") == "ext-SemanticMediaWiki"
        assert extension_tag("Semantic\tMedia Wiki ") == "ext-SemanticMediaWiki"

    def test_no_document(self):
        assert build_tags("wikitide", "1.40") == ("wikitide", "1.40")


class TestTagResolver:
    def test_compute_tags_from_document(self, settings, make_directory):
        directory = make_directory(RequestContext.for_request("foo.wikitide.org"))
        documents = OverrideDocumentStore(settings.cache_directory)
        resolver = TagResolver(directory, documents, lambda tenant_id: ("Cite", "Semantic MediaWiki"))

        tags = resolver.compute_tags("foowikitide")

        assert tags == ("wikitide", "1.41", "private", "ext-Cite", "ext-SemanticMediaWiki")

    def test_compute_tags_is_stable(self, settings, make_directory):
        directory = make_directory(RequestContext.for_request("foo.wikitide.org"))
        documents = OverrideDocumentStore(settings.cache_directory)
        resolver = TagResolver(directory, documents, lambda tenant_id: ())

        assert resolver.compute_tags("metawikitide") == resolver.compute_tags("metawikitide") == (
            "wikitide",
            "1.40",
        )

    def test_explicit_version(self, settings, make_directory):
        directory = make_directory(RequestContext.for_cli("foowikitide"))
        documents = OverrideDocumentStore(settings.cache_directory)
        resolver = TagResolver(directory, documents, lambda tenant_id: ())

        assert resolver.compute_tags("foowikitide", version="1.40")[:2] == ("wikitide", "1.40")

    def test_features_only_change_the_feature_suffix(self, settings, make_directory):
        directory = make_directory(RequestContext.for_request("foo.wikitide.org"))
        documents = OverrideDocumentStore(settings.cache_directory)

        def tags_with(*features):
            return TagResolver(directory, documents, lambda tenant_id: features).compute_tags("foowikitide")

        few = tags_with("Cite")
        many = tags_with("Cite", "Echo", "Semantic MediaWiki")

        assert few[:-1] == many[:-3] == ("wikitide", "1.41", "private")
        assert few[-1:] == ("ext-Cite",)
        assert many[-3:] == ("ext-Cite", "ext-Echo", "ext-SemanticMediaWiki")
