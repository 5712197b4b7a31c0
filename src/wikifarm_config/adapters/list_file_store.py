"""Filesystem store for generated wiki list files.

One JSON file per farm and purpose lives in the cache directory:

* ``active-<farm>.json``   - open wikis, site name and cluster only
* ``databases-<farm>.json`` - every non-deleted wiki with version and url
* ``deleted-<farm>.json``  - deleted wikis (``{"deleted": "databases", ...}``)
* ``<channel>-wikis-<farm>.json`` - non-deleted wikis pinned to one version

The files are a read-through cache of the wiki registry: a missing file is
a cold cache and reads as empty. Regeneration replaces each file atomically.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Any

from anyio import to_thread

from wikifarm_config.adapters.json_files import atomic_write_json, load_json_file
from wikifarm_config.adapters.registry_source import AbstractRegistrySource, RegistryRow
from wikifarm_config.domain.model import ListFile, TenantEntry
from wikifarm_config.farm_config import FarmConfig


logger = logging.getLogger(__name__)


ExcludePredicate = Callable[[str, TenantEntry], bool]


def active_list_name(farm: str) -> str:
    return f"active-{farm}"


def databases_list_name(farm: str) -> str:
    return f"databases-{farm}"


def deleted_list_name(farm: str) -> str:
    return f"deleted-{farm}"


def version_list_name(channel: str, farm: str) -> str:
    return f"{channel}-wikis-{farm}"


@dataclass(frozen=True, slots=True)
class MaintenanceFilter:
    """Predicate selecting the executing wiki while its cluster is in maintenance.

    The store only drops matching entries; redirecting the request to a
    maintenance page is the caller's job. CLI callers are never filtered.
    """

    clusters: frozenset[str]
    current_tenant: str | None
    cli: bool = False

    @classmethod
    def create(cls, clusters: Iterable[str], current_tenant: str | None, *, cli: bool = False) -> MaintenanceFilter:
        return cls(clusters=frozenset(clusters), current_tenant=current_tenant, cli=cli)

    @property
    def active(self) -> bool:
        return bool(self.clusters) and bool(self.current_tenant) and not self.cli

    def __call__(self, tenant_id: str, entry: TenantEntry) -> bool:
        if not self.active:
            return False
        return tenant_id == self.current_tenant and entry.cluster in self.clusters


class ListFileStore:
    """Read and regenerate list files under a cache directory."""

    def __init__(self, cache_directory: Path, *, node_name: str = "") -> None:
        self.cache_directory = cache_directory
        self.node_name = node_name

    def path_for(self, list_name: str) -> Path:
        return self.cache_directory / f"{list_name}.json"

    def read(self, list_name: str, *, exclude: ExcludePredicate | None = None) -> ListFile:
        """Read a list file; a missing file yields an empty list.

        Raises:
            CacheCorruptedError: If the file exists but is not valid JSON
        """
        payload = load_json_file(self.path_for(list_name))
        if payload is None:
            logger.debug("List file %s missing; treating as empty", list_name)
            return ListFile.empty(list_name)

        list_file = ListFile.from_payload(list_name, payload)
        if exclude is None:
            return list_file

        kept: dict[str, TenantEntry] = {}
        excluded: set[str] = set()
        for key, entry in list_file.entries.items():
            if exclude(key, entry):
                excluded.add(key)
            else:
                kept[key] = entry
        if excluded:
            logger.warning("Excluding %s from %s: cluster under maintenance", sorted(excluded), list_name)
        return ListFile(
            name=list_name,
            entries=kept,
            deleted_list=list_file.deleted_list,
            excluded=frozenset(excluded),
        )

    def write(self, list_name: str, payload: dict[str, Any]) -> Path:
        path = self.path_for(list_name)
        atomic_write_json(path, payload)
        return path

    # --- regeneration ----------------------------------------------------

    def build_lists(self, farm: FarmConfig, source: AbstractRegistrySource) -> dict[str, dict[str, Any]]:
        """Query the registry and build every list document for ``farm``."""
        default_version = farm.default_version(self.node_name)

        lists: dict[str, dict[str, Any]] = {
            active_list_name(farm.name): {
                "combi": {key: _short_entry(row) for key, row in source.active_tenants().items()},
            },
            databases_list_name(farm.name): {
                "combi": {
                    key: _combi_entry(row, default_version) for key, row in source.combi_tenants().items()
                },
            },
            deleted_list_name(farm.name): {
                "deleted": "databases",
                "databases": {key: _short_entry(row) for key, row in source.deleted_tenants().items()},
            },
        }

        for channel, version in farm.versions.items():
            lists[version_list_name(channel, farm.name)] = {
                "combi": {
                    key: _combi_entry(row, default_version)
                    for key, row in source.combi_tenants(version).items()
                },
            }
        return lists

    def regenerate(self, farm: FarmConfig, source: AbstractRegistrySource) -> list[str]:
        """Rebuild all list files of ``farm`` from the registry.

        Every registry query runs before the first write, so a failing query
        leaves all previous files untouched. Each file is then replaced
        atomically.
        """
        lists = self.build_lists(farm, source)
        written: list[str] = []
        for list_name, payload in lists.items():
            self.write(list_name, payload)
            written.append(list_name)
        logger.info("Regenerated %d list files for farm %s", len(written), farm.name)
        return written

    async def regenerate_async(self, farm: FarmConfig, source: AbstractRegistrySource) -> list[str]:
        """Run ``regenerate`` in a worker thread."""
        return await to_thread.run_sync(self.regenerate, farm, source)


def _short_entry(row: RegistryRow) -> dict[str, str]:
    return TenantEntry(site_name=row.site_name, cluster=row.cluster).to_dict()


def _combi_entry(row: RegistryRow, default_version: str) -> dict[str, str]:
    return TenantEntry(
        site_name=row.site_name,
        cluster=row.cluster,
        version=row.version or default_version,
        url=row.url,
    ).to_dict()
