"""CLI for inspecting resolved wiki configuration and regenerating list files."""

from __future__ import annotations

import argparse
from collections.abc import Sequence
import logging
from pathlib import Path
import sys
from typing import Any

import anyio

from wikifarm_config.adapters.json_files import CacheCorruptedError, serialize_json
from wikifarm_config.adapters.list_file_store import ListFileStore
from wikifarm_config.adapters.registry_source import SqliteRegistrySource
from wikifarm_config.config import Settings
from wikifarm_config.context import RequestContext
from wikifarm_config.farm_config import FarmConfig, FarmDeployment
from wikifarm_config.observability.logging import configure_logging
from wikifarm_config.service_layer.resolver import WikiConfigResolver


logger = logging.getLogger(__name__)


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wikifarm-config",
        description="Resolve per-wiki configuration of a wiki farm",
    )
    parser.add_argument(
        "--config-dir",
        type=Path,
        help="Directory holding farms.json, settings.json and extensions.json",
    )
    parser.add_argument(
        "--cache-dir",
        type=Path,
        help="Directory holding list files, override documents and config snapshots",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    resolve = subparsers.add_parser("resolve", help="Resolve a request host to a wiki")
    resolve.add_argument("host", help="Request host, e.g. foo.wikitide.org")

    show_config = subparsers.add_parser("show-config", help="Print the materialized configuration of a wiki")
    show_config.add_argument("--wiki", required=True, help="Wiki id")
    show_config.add_argument("--version", help="Code version to resolve for (must be one of the farm's)")
    show_config.add_argument("--setting", help="Print only this setting")

    extensions = subparsers.add_parser("extensions", help="Print the active features of a wiki")
    extensions.add_argument("--wiki", required=True, help="Wiki id")

    tags = subparsers.add_parser("tags", help="Print the configuration tags of a wiki")
    tags.add_argument("--wiki", required=True, help="Wiki id")

    regenerate = subparsers.add_parser("regenerate-lists", help="Rebuild list files from the wiki registry")
    regenerate.add_argument("--registry", type=Path, required=True, help="SQLite database with a cw_wikis table")
    regenerate.add_argument("--farm", help="Only regenerate this farm (default: every farm)")
    return parser


def _build_settings(args: argparse.Namespace) -> Settings:
    overrides: dict[str, Any] = {}
    if args.config_dir is not None:
        overrides["config_directory"] = args.config_dir
    if args.cache_dir is not None:
        overrides["cache_directory"] = args.cache_dir
    return Settings(**overrides)


def _configure_logging(settings: Settings) -> None:
    if logging.getLogger().handlers:
        return
    configure_logging(settings.log_level, settings.log_json)


def _print_json(payload: Any) -> None:
    sys.stdout.write(serialize_json(payload).decode("utf-8"))


def _wiki_resolver(
    settings: Settings, deployment: FarmDeployment, args: argparse.Namespace
) -> WikiConfigResolver | None:
    version = getattr(args, "version", None)
    resolver = WikiConfigResolver(settings, deployment, RequestContext.for_cli(args.wiki, version))
    if resolver.missing:
        logger.error("Unknown wiki: %s", args.wiki)
        return None
    return resolver


def _select_farms(deployment: FarmDeployment, name: str | None) -> list[FarmConfig]:
    if name is None:
        return list(deployment.farms)
    farm = deployment.get_farm(name)
    if farm is None:
        raise ValueError(f"Unknown farm: {name}")
    return [farm]


def _run_resolve(settings: Settings, deployment: FarmDeployment, args: argparse.Namespace) -> int:
    resolver = WikiConfigResolver(settings, deployment, RequestContext.for_request(args.host))
    request = resolver.resolve()
    _print_json(request.to_dict())
    if request.tenant_id is None:
        logger.warning("Host %s does not resolve to a wiki", args.host)
        return 1
    return 0


def _run_show_config(settings: Settings, deployment: FarmDeployment, args: argparse.Namespace) -> int:
    resolver = _wiki_resolver(settings, deployment, args)
    if resolver is None:
        return 1
    if args.setting is None:
        _print_json(resolver.config())
        return 0

    value = resolver.setting_value(args.setting)
    if value is None:
        logger.error("Setting %s is not set for %s", args.setting, args.wiki)
        return 1
    _print_json({args.setting: value})
    return 0


def _run_extensions(settings: Settings, deployment: FarmDeployment, args: argparse.Namespace) -> int:
    resolver = _wiki_resolver(settings, deployment, args)
    if resolver is None:
        return 1
    _print_json(list(resolver.active_features()))
    return 0


def _run_tags(settings: Settings, deployment: FarmDeployment, args: argparse.Namespace) -> int:
    resolver = _wiki_resolver(settings, deployment, args)
    if resolver is None:
        return 1
    _print_json(list(resolver.tags()))
    return 0


def _run_regenerate(settings: Settings, deployment: FarmDeployment, args: argparse.Namespace) -> int:
    farms = _select_farms(deployment, args.farm)
    source = SqliteRegistrySource(args.registry)
    store = ListFileStore(settings.cache_directory, node_name=settings.node_name)

    written: dict[str, list[str]] = {}
    for farm in farms:
        written[farm.name] = anyio.run(store.regenerate_async, farm, source)
    _print_json(written)
    return 0


_COMMANDS = {
    "resolve": _run_resolve,
    "show-config": _run_show_config,
    "extensions": _run_extensions,
    "tags": _run_tags,
    "regenerate-lists": _run_regenerate,
}


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_argument_parser()
    args = parser.parse_args(argv)
    settings = _build_settings(args)
    _configure_logging(settings)

    try:
        deployment = FarmDeployment.from_json_file(settings.farms_path)
    except FileNotFoundError as exc:
        logger.error("Farm config not found: %s", exc)
        return 1
    except ValueError as exc:
        logger.error("Invalid farm config: %s", exc)
        return 1

    try:
        return _COMMANDS[args.command](settings, deployment, args)
    except CacheCorruptedError as exc:
        logger.critical("%s", exc)
        return 1
    except (FileNotFoundError, ValueError) as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
