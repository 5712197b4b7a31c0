"""Unit tests for the wikifarm-config CLI."""

from __future__ import annotations

import sqlite3

import orjson
import pytest

from wikifarm_config.cli import build_argument_parser, main


pytestmark = pytest.mark.unit


@pytest.fixture
def base_args(farm_root):
    return ["--config-dir", str(farm_root / "config"), "--cache-dir", str(farm_root / "cache")]


def run(capsys, argv):
    exit_code = main(argv)
    return exit_code, capsys.readouterr().out


class TestParser:
    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_argument_parser().parse_args([])

    def test_show_config_requires_wiki(self):
        with pytest.raises(SystemExit):
            build_argument_parser().parse_args(["show-config"])


class TestCommands:
    def test_resolve(self, capsys, base_args):
        exit_code, out = run(capsys, [*base_args, "resolve", "foo.wikitide.org"])

        assert exit_code == 0
        payload = orjson.loads(out)
        assert payload["tenant_id"] == "foowikitide"
        assert payload["site_name"] == "Foo Wiki"

    def test_resolve_unknown_host(self, capsys, base_args):
        exit_code, out = run(capsys, [*base_args, "resolve", "nope.wikitide.org"])

        assert exit_code == 1
        assert orjson.loads(out)["missing"] is True

    def test_show_config(self, capsys, base_args):
        exit_code, out = run(capsys, [*base_args, "show-config", "--wiki", "foowikitide"])

        assert exit_code == 0
        assert orjson.loads(out)["wgLogo"] == "/custom.png"

    def test_show_single_setting_for_version(self, capsys, base_args):
        exit_code, out = run(
            capsys,
            [*base_args, "show-config", "--wiki", "foowikitide", "--version", "1.40", "--setting", "wgServerName"],
        )

        assert exit_code == 0
        assert orjson.loads(out) == {"wgServerName": "foo.wikitide.org"}

    def test_show_unknown_setting(self, capsys, base_args):
        exit_code, _ = run(capsys, [*base_args, "show-config", "--wiki", "foowikitide", "--setting", "wgNothing"])

        assert exit_code == 1

    def test_unknown_wiki(self, capsys, base_args):
        exit_code, out = run(capsys, [*base_args, "tags", "--wiki", "nopewikitide"])

        assert exit_code == 1
        assert out == ""

    def test_deleted_wiki_is_addressable(self, capsys, base_args):
        exit_code, out = run(capsys, [*base_args, "tags", "--wiki", "oldwikitide"])

        assert exit_code == 0
        assert orjson.loads(out)[0] == "wikitide"

    def test_extensions(self, capsys, base_args):
        exit_code, out = run(capsys, [*base_args, "extensions", "--wiki", "foowikitide"])

        assert exit_code == 0
        assert orjson.loads(out) == ["Cite", "Semantic MediaWiki"]

    def test_tags(self, capsys, base_args):
        exit_code, out = run(capsys, [*base_args, "tags", "--wiki", "foowikitide"])

        assert exit_code == 0
        assert orjson.loads(out) == ["wikitide", "1.41", "private", "ext-Cite", "ext-SemanticMediaWiki"]

    def test_missing_farm_config(self, capsys, tmp_path):
        exit_code, _ = run(capsys, ["--config-dir", str(tmp_path / "nowhere"), "resolve", "foo.wikitide.org"])

        assert exit_code == 1

    def test_corrupted_cache(self, capsys, base_args, farm_root):
        (farm_root / "cache" / "databases-wikitide.json").write_text("{oops")

        exit_code, _ = run(capsys, [*base_args, "resolve", "foo.wikitide.org"])

        assert exit_code == 1


class TestRegenerateLists:
    @pytest.fixture
    def registry(self, tmp_path):
        path = tmp_path / "registry.db"
        conn = sqlite3.connect(path)
        conn.execute(
            "CREATE TABLE cw_wikis (wiki_dbname TEXT, wiki_dbcluster TEXT, wiki_sitename TEXT, wiki_url TEXT,"
            " wiki_version TEXT, wiki_closed INTEGER, wiki_deleted INTEGER, wiki_inactive INTEGER,"
            " wiki_locked INTEGER)"
        )
        conn.execute("INSERT INTO cw_wikis VALUES ('newwiki', 'c5', 'New', NULL, NULL, 0, 0, 0, 0)")
        conn.commit()
        conn.close()
        return path

    def test_regenerate_one_farm(self, capsys, base_args, registry, farm_root):
        exit_code, out = run(
            capsys, [*base_args, "regenerate-lists", "--registry", str(registry), "--farm", "wikiforge"]
        )

        assert exit_code == 0
        assert orjson.loads(out) == {
            "wikiforge": ["active-wikiforge", "databases-wikiforge", "deleted-wikiforge", "stable-wikis-wikiforge"]
        }
        combi = orjson.loads((farm_root / "cache" / "databases-wikiforge.json").read_bytes())
        assert combi == {"combi": {"newwiki": {"s": "New", "c": "c5", "v": "1.40"}}}

    def test_unknown_farm(self, capsys, base_args, registry):
        exit_code, _ = run(capsys, [*base_args, "regenerate-lists", "--registry", str(registry), "--farm", "nope"])

        assert exit_code == 1

    def test_missing_registry(self, capsys, base_args, tmp_path):
        exit_code, _ = run(
            capsys, [*base_args, "regenerate-lists", "--registry", str(tmp_path / "missing.db"), "--farm", "wikiforge"]
        )

        assert exit_code == 1
