"""Tenant directory: maps hosts and CLI context to wikis and wiki metadata.

All lookups are served from the generated list files. A directory instance
belongs to one request: list files are read at most once per instance and
the result is reused for the remainder of the request.
"""

from __future__ import annotations

from collections.abc import Iterable
import logging

from wikifarm_config.adapters.list_file_store import (
    ListFileStore,
    MaintenanceFilter,
    databases_list_name,
    deleted_list_name,
)
from wikifarm_config.context import RequestContext
from wikifarm_config.domain.model import DEFAULT_SITENAME, DEFAULT_TENANT, ListFile, TenantEntry, TenantRecord
from wikifarm_config.farm_config import FarmConfig, FarmDeployment


logger = logging.getLogger(__name__)


def _normalize_host(host: str) -> str:
    host = host.strip().lower()
    if "://" in host:
        host = host.split("://", 1)[1]
    host = host.split("/", 1)[0]
    return host.split(":", 1)[0]


def _strip_www(host: str) -> str:
    label, _, rest = host.partition(".")
    if label == "www" and rest:
        return rest
    return host


class TenantDirectory:
    """Resolve wikis and expose their cluster, url, site name and version."""

    def __init__(
        self,
        store: ListFileStore,
        deployment: FarmDeployment,
        context: RequestContext,
        *,
        maintenance_clusters: Iterable[str] = (),
        node_name: str = "",
        forced_version: str | None = None,
    ) -> None:
        self.store = store
        self.deployment = deployment
        self.context = context
        self.maintenance_clusters = frozenset(maintenance_clusters)
        self.node_name = node_name
        self.forced_version = forced_version

        self.current_tenant: str | None = context.tenant_id
        self._lists: dict[tuple[str, MaintenanceFilter], ListFile] = {}
        self._url_index: dict[str, str] | None = None

    # --- list access -----------------------------------------------------

    def _filter(self) -> MaintenanceFilter:
        return MaintenanceFilter.create(self.maintenance_clusters, self.current_tenant, cli=self.context.cli)

    def _read(self, list_name: str, *, filtered: bool = True) -> ListFile:
        maintenance = self._filter() if filtered else MaintenanceFilter.create((), None)
        key = (list_name, maintenance)
        if key not in self._lists:
            exclude = maintenance if maintenance.active else None
            self._lists[key] = self.store.read(list_name, exclude=exclude)
        return self._lists[key]

    def _databases(self, farm: FarmConfig) -> ListFile:
        return self._read(databases_list_name(farm.name))

    def _deleted(self, farm: FarmConfig) -> ListFile:
        return self._read(deleted_list_name(farm.name))

    def _entry(self, tenant_id: str) -> tuple[TenantEntry | None, bool]:
        """Return the list entry for a wiki and whether it came from the deleted list."""
        farm = self.farm_for(tenant_id)
        entry = self._databases(farm).get(tenant_id)
        if entry is not None:
            return entry, False
        if self.context.cli:
            entry = self._deleted(farm).get(tenant_id)
            if entry is not None:
                return entry, True
        return None, False

    # --- resolution ------------------------------------------------------

    def farm_for(self, tenant_id: str) -> FarmConfig:
        return self.deployment.farm_for_tenant(tenant_id)

    def tenant_by_url(self, url: str) -> str | None:
        """Reverse lookup of a wiki by its explicit url (custom domains).

        The index is built by a linear scan of every farm's combi list, once
        per directory instance.
        """
        if self._url_index is None:
            index: dict[str, str] = {}
            for farm in self.deployment.farms:
                for key, entry in self._read(databases_list_name(farm.name), filtered=False).entries.items():
                    if entry.url:
                        index.setdefault(entry.url.rstrip("/"), key)
            self._url_index = index
        return self._url_index.get(url.rstrip("/"))

    def candidate_for(self, host_or_id: str) -> str | None:
        """Derive the wiki id a host or explicit id refers to, without checking it exists."""
        if "." not in host_or_id and "/" not in host_or_id:
            return host_or_id

        host = _normalize_host(host_or_id)
        custom = self.tenant_by_url(f"https://{host}")
        if custom is not None:
            return custom

        label, _, suffix = _strip_www(host).partition(".")
        if not label or not suffix:
            return None
        farm = self.deployment.farm_for_domain(suffix)
        if farm is None:
            return None
        return label + farm.db_suffix

    def resolve_tenant(self, host_or_id: str | None = None) -> str | None:
        """Resolve a host (or explicit id) to a known wiki id.

        Returns None when nothing matches; the operator's default server
        resolves to the ``"default"`` sentinel instead.
        """
        value = host_or_id
        if value is None:
            value = self.context.tenant_id or self.context.host
        if not value:
            return None
        if value == DEFAULT_TENANT:
            return DEFAULT_TENANT

        candidate = self.candidate_for(value)
        if candidate is not None:
            self.current_tenant = candidate
            farm = self.farm_for(candidate)
            if candidate in self.local_tenants(farm.name):
                return candidate
            if candidate in self._databases(farm).excluded:
                logger.warning("Wiki %s is on a cluster under maintenance", candidate)
            else:
                logger.debug("Wiki %s is not in any list of farm %s", candidate, farm.name)

        if "." in value and self.deployment.farm_for_default_server(_strip_www(_normalize_host(value))):
            return DEFAULT_TENANT
        return None

    def in_maintenance(self, tenant_id: str) -> bool:
        """True when ``tenant_id`` executes on a cluster under maintenance (never for CLI)."""
        maintenance = MaintenanceFilter.create(self.maintenance_clusters, tenant_id, cli=self.context.cli)
        if not maintenance.active:
            return False
        entry = self._read(databases_list_name(self.farm_for(tenant_id).name), filtered=False).get(tenant_id)
        return entry is not None and maintenance(tenant_id, entry)

    # --- farm-wide maps --------------------------------------------------

    def _farm(self, farm: str | None) -> FarmConfig:
        if farm is None:
            return self.deployment.get_default_farm()
        config = self.deployment.get_farm(farm)
        if config is None:
            raise ValueError(f"Unknown farm: {farm}")
        return config

    def local_tenants(self, farm: str | None = None) -> set[str]:
        """Wikis this context may address: combi list, plus deleted wikis for CLI."""
        return self.list_tenants(farm, include_deleted=self.context.cli)

    def list_tenants(self, farm: str | None = None, include_deleted: bool = False) -> set[str]:
        config = self._farm(farm)
        tenants = set(self._databases(config).keys())
        if include_deleted:
            tenants.update(self._deleted(config).keys())
        return tenants

    def _farm_entries(self, config: FarmConfig) -> dict[str, TenantEntry]:
        entries = dict(self._databases(config).entries)
        if self.context.cli:
            for key, entry in self._deleted(config).entries.items():
                entries.setdefault(key, entry)
        return entries

    def get_cluster_map(self, farm: str | None = None) -> dict[str, str | None]:
        return {key: entry.cluster for key, entry in self._farm_entries(self._farm(farm)).items()}

    def get_site_names(self, farm: str | None = None) -> dict[str, str]:
        names = {
            key: entry.site_name or DEFAULT_SITENAME
            for key, entry in self._farm_entries(self._farm(farm)).items()
        }
        names[DEFAULT_TENANT] = DEFAULT_SITENAME
        return names

    def get_servers(self, farm: str | None = None) -> dict[str, str]:
        config = self._farm(farm)
        servers = {key: self._url_for(config, key, entry) for key, entry in self._farm_entries(config).items()}
        servers[DEFAULT_TENANT] = f"https://{config.default_server}"
        return servers

    # --- per-wiki metadata -----------------------------------------------

    def get_tenant(self, tenant_id: str) -> TenantRecord | None:
        entry, deleted = self._entry(tenant_id)
        if entry is None:
            return None
        return TenantRecord(
            tenant_id=tenant_id,
            farm=self.farm_for(tenant_id).name,
            cluster=entry.cluster,
            site_name=entry.site_name,
            url=entry.url,
            version=entry.version,
            deleted=deleted,
        )

    def _url_for(self, farm: FarmConfig, tenant_id: str, entry: TenantEntry | None) -> str:
        if entry is not None and entry.url:
            return entry.url
        if tenant_id == DEFAULT_TENANT or not farm.owns(tenant_id):
            return f"https://{farm.default_server}"
        return f"https://{farm.label_of(tenant_id)}.{farm.domain}"

    def get_url(self, tenant_id: str) -> str:
        """Explicit url from the registry, else ``https://<label>.<farm domain>``."""
        if tenant_id == DEFAULT_TENANT:
            return f"https://{self.deployment.get_default_farm().default_server}"
        entry, _ = self._entry(tenant_id)
        return self._url_for(self.farm_for(tenant_id), tenant_id, entry)

    def get_site_name(self, tenant_id: str) -> str:
        entry, _ = self._entry(tenant_id)
        if entry is None or not entry.site_name:
            return DEFAULT_SITENAME
        return entry.site_name

    def get_version(self, tenant_id: str) -> str:
        """Code version for a wiki: forced override, pinned version, farm default."""
        if self.forced_version:
            return self.forced_version
        entry, _ = self._entry(tenant_id)
        if entry is not None and entry.version:
            return entry.version
        return self.farm_for(tenant_id).default_version(self.node_name)

    def is_missing(self, tenant_id: str | None) -> bool:
        if not tenant_id:
            return True
        return tenant_id not in self.local_tenants(self.farm_for(tenant_id).name)
