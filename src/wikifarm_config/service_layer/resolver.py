"""Per-request configuration resolution.

``WikiConfigResolver`` wires the tenant directory, tag resolver, settings
merge engine, snapshot cache and feature activation together for one
request (or one CLI invocation). Everything it computes is memoized on the
instance; nothing is shared between requests except the files on disk.

Usage:
    settings = Settings()
    resolver = WikiConfigResolver.from_settings(settings, RequestContext.for_request(host))
    request = resolver.resolve()
    if request.in_maintenance:
        ...  # serve the maintenance page
    elif request.missing:
        ...  # serve the "wiki not configured" page
    else:
        config = resolver.config()
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from functools import cached_property
import logging
from pathlib import Path
from typing import Any

from wikifarm_config.adapters.list_file_store import ListFileStore
from wikifarm_config.adapters.override_store import OverrideDocumentStore
from wikifarm_config.config import Settings
from wikifarm_config.context import RequestContext
from wikifarm_config.directory import TenantDirectory
from wikifarm_config.domain.model import DEFAULT_SITENAME, DEFAULT_TENANT, ConfigSnapshot
from wikifarm_config.domain.override_document import OverrideDocument
from wikifarm_config.extensions import ExtensionActivation, ExtensionManifestIndex, ExtensionRegistry
from wikifarm_config.farm_config import FarmConfig, FarmDeployment
from wikifarm_config.observability.context import bind_log_context
from wikifarm_config.settings_merge import SettingsByTag, SettingsMergeEngine, site_params
from wikifarm_config.snapshot_cache import ConfigSnapshotCache
from wikifarm_config.tags import TagResolver


logger = logging.getLogger(__name__)

DBNAME_SETTING = "wgDBname"
SERVER_SETTING = "wgServer"
SITENAME_SETTING = "wgSitename"


@dataclass(frozen=True, slots=True)
class ResolvedRequest:
    """Outcome of resolving a request to a wiki."""

    tenant_id: str | None
    farm: str
    version: str
    server: str
    site_name: str
    missing: bool
    in_maintenance: bool

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class WikiConfigResolver:
    """Resolve and cache the configuration of the wiki a request addresses."""

    def __init__(
        self,
        settings: Settings,
        deployment: FarmDeployment,
        context: RequestContext,
        *,
        store: ListFileStore | None = None,
        snapshots: ConfigSnapshotCache | None = None,
    ) -> None:
        self.settings = settings
        self.deployment = deployment
        self.context = context

        self.store = store or ListFileStore(settings.cache_directory, node_name=settings.node_name)
        self.documents = OverrideDocumentStore(settings.cache_directory)
        self.directory = TenantDirectory(
            self.store,
            deployment,
            context,
            maintenance_clusters=settings.get_maintenance_clusters(),
            node_name=settings.node_name,
            forced_version=settings.wiki_version,
        )
        self.snapshots = snapshots or ConfigSnapshotCache(
            settings.cache_directory,
            self.fingerprint_sources,
            revalidate_delay_seconds=settings.revalidate_delay_seconds,
        )
        self.manifests = ExtensionManifestIndex(settings.cache_directory, settings.runtime_path)
        self.tag_resolver = TagResolver(self.directory, self.documents, self.active_features)

        self._activations: dict[str, ExtensionActivation] = {}
        self._fingerprints: dict[str, float] = {}
        self._snapshots: dict[str, ConfigSnapshot] = {}

    @classmethod
    def from_settings(cls, settings: Settings, context: RequestContext) -> WikiConfigResolver:
        """Build a resolver, loading the farm topology from ``settings.farms_path``.

        Raises:
            FileNotFoundError: If farms.json doesn't exist
            ValueError: If farms.json is invalid
        """
        return cls(settings, FarmDeployment.from_json_file(settings.farms_path), context)

    # --- shared sources --------------------------------------------------

    @cached_property
    def extension_registry(self) -> ExtensionRegistry:
        return ExtensionRegistry.from_json_file(self.settings.extensions_path)

    @cached_property
    def merge_engine(self) -> SettingsMergeEngine:
        return SettingsMergeEngine.from_json_file(self.settings.settings_path)

    # --- the current wiki ------------------------------------------------

    @cached_property
    def tenant_id(self) -> str | None:
        tenant_id = self.directory.resolve_tenant()
        if tenant_id is not None:
            bind_log_context(tenant=tenant_id)
        return tenant_id

    @cached_property
    def farm(self) -> FarmConfig:
        if self.tenant_id is None or self.tenant_id == DEFAULT_TENANT:
            host_farm = self._farm_from_host()
            return host_farm or self.deployment.get_default_farm()
        return self.directory.farm_for(self.tenant_id)

    def _farm_from_host(self) -> FarmConfig | None:
        if not self.context.host:
            return None
        host = self.context.host.lower().split(":", 1)[0]
        return self.deployment.farm_for_default_server(host) or self.deployment.farm_for_domain(
            host.partition(".")[2]
        )

    @cached_property
    def version(self) -> str:
        if self.tenant_id is None or self.tenant_id == DEFAULT_TENANT:
            if self.settings.wiki_version:
                return self.settings.wiki_version
            cli_version = self._cli_version(self.farm)
            if cli_version:
                return cli_version
            return self.farm.default_version(self.settings.node_name)
        return self.version_for(self.tenant_id)

    @cached_property
    def server(self) -> str:
        return self.directory.get_url(self.tenant_id or DEFAULT_TENANT)

    @cached_property
    def site_name(self) -> str:
        if self.tenant_id is None:
            return DEFAULT_SITENAME
        return self.directory.get_site_name(self.tenant_id)

    @cached_property
    def missing(self) -> bool:
        return self.directory.is_missing(self.tenant_id)

    @cached_property
    def in_maintenance(self) -> bool:
        if self.tenant_id is not None:
            return False
        # resolution records the rejected candidate
        candidate = self.directory.current_tenant
        return candidate is not None and self.directory.in_maintenance(candidate)

    def resolve(self) -> ResolvedRequest:
        bind_log_context(host=self.context.host, farm=self.farm.name, version=self.version)
        return ResolvedRequest(
            tenant_id=self.tenant_id,
            farm=self.farm.name,
            version=self.version,
            server=self.server,
            site_name=self.site_name,
            missing=self.missing,
            in_maintenance=self.in_maintenance,
        )

    def install_path(self, file: str = "") -> Path:
        """Path inside the runtime installed for the current version."""
        root = self.settings.runtime_path(self.version)
        return root / file if file else root

    def _require_tenant(self, tenant_id: str | None) -> str:
        tenant_id = tenant_id or self.tenant_id
        if tenant_id is None:
            raise LookupError("Request does not address a configured wiki")
        return tenant_id

    # --- per-wiki resolution ---------------------------------------------

    def _cli_version(self, farm: FarmConfig) -> str | None:
        """The CLI-supplied version, if it is one the farm runs."""
        version = self.context.version
        if version and version in farm.versions.values():
            return version
        return None

    def version_for(self, tenant_id: str) -> str:
        """Code version: environment override, CLI version, pinned version, farm default."""
        if self.settings.wiki_version:
            return self.settings.wiki_version
        if self.context.cli and tenant_id == self.context.tenant_id:
            cli_version = self._cli_version(self.directory.farm_for(tenant_id))
            if cli_version:
                return cli_version
        return self.directory.get_version(tenant_id)

    def override_document(self, tenant_id: str | None = None) -> OverrideDocument | None:
        return self.documents.load(self._require_tenant(tenant_id))

    def fingerprint_sources(self, tenant_id: str) -> list[Path]:
        return [
            self.settings.farms_path,
            self.settings.settings_path,
            self.settings.extensions_path,
            self.settings.runtime_marker_path(self.version_for(tenant_id)),
            self.documents.path_for(tenant_id),
        ]

    def fingerprint(self, tenant_id: str) -> float:
        if tenant_id not in self._fingerprints:
            self._fingerprints[tenant_id] = self.snapshots.fingerprint(tenant_id)
        return self._fingerprints[tenant_id]

    def _cached_extensions(self, tenant_id: str) -> tuple[str, ...] | None:
        if tenant_id in self._snapshots:
            return self._snapshots[tenant_id].extensions
        cached = self.snapshots.read(tenant_id, self.fingerprint(tenant_id), version=self.version_for(tenant_id))
        return cached.extensions if cached is not None else None

    def activation(self, tenant_id: str | None = None) -> ExtensionActivation:
        tenant_id = self._require_tenant(tenant_id)
        if tenant_id not in self._activations:
            self._activations[tenant_id] = ExtensionActivation(
                lambda: self.extension_registry,
                lambda: self.documents.load(tenant_id),
                disabled=self.settings.get_disabled_extensions(),
                cached=lambda: self._cached_extensions(tenant_id),
            )
        return self._activations[tenant_id]

    def active_features(self, tenant_id: str | None = None) -> tuple[str, ...]:
        return self.activation(tenant_id).active_features()

    def tags(self, tenant_id: str | None = None) -> tuple[str, ...]:
        tenant_id = self._require_tenant(tenant_id)
        return self.tag_resolver.compute_tags(tenant_id, version=self.version_for(tenant_id))

    def _identity_settings(self, tenant_id: str) -> SettingsByTag:
        return {
            DBNAME_SETTING: {tenant_id: tenant_id},
            SERVER_SETTING: {tenant_id: self.directory.get_url(tenant_id)},
            SITENAME_SETTING: {tenant_id: self.directory.get_site_name(tenant_id)},
        }

    def settings_by_tag(self, tenant_id: str | None = None) -> SettingsByTag:
        """Tiered settings applicable to a wiki (before materialization)."""
        tenant_id = self._require_tenant(tenant_id)
        settings = self.merge_engine.build_settings(tenant_id, self.documents.load(tenant_id), self.tags(tenant_id))
        for name, by_tier in self._identity_settings(tenant_id).items():
            tiers = settings.setdefault(name, {})
            for tier, value in by_tier.items():
                tiers.setdefault(tier, value)
        return settings

    def compute_snapshot(self, tenant_id: str, fingerprint: float) -> ConfigSnapshot:
        tags = self.tags(tenant_id)
        farm = self.directory.farm_for(tenant_id)
        globals_ = SettingsMergeEngine.materialize(
            self.settings_by_tag(tenant_id),
            tenant_id,
            tags,
            site_params(tenant_id, farm),
        )
        logger.info("Computed configuration for %s (%d settings, tags=%s)", tenant_id, len(globals_), list(tags))
        return ConfigSnapshot(
            fingerprint=fingerprint,
            globals=globals_,
            extensions=self.active_features(tenant_id),
            version=self.version_for(tenant_id),
        )

    def snapshot(self, tenant_id: str | None = None) -> ConfigSnapshot:
        tenant_id = self._require_tenant(tenant_id)
        if tenant_id not in self._snapshots:
            self._snapshots[tenant_id] = self.snapshots.get(
                tenant_id,
                lambda fingerprint: self.compute_snapshot(tenant_id, fingerprint),
                fingerprint=self.fingerprint(tenant_id),
                version=self.version_for(tenant_id),
            )
        return self._snapshots[tenant_id]

    def config(self, tenant_id: str | None = None) -> dict[str, Any]:
        return self.snapshot(tenant_id).globals

    def setting_value(self, name: str, tenant_id: str | None = None) -> Any:
        """The override document's value for ``name``, else the materialized one."""
        document = self.override_document(tenant_id)
        if document is not None and name in document.settings:
            return document.settings[name]
        return self.config(tenant_id).get(name)

    def manifest_paths(self, tenant_id: str | None = None) -> list[Path]:
        """Manifests of the active features in the wiki's runtime version."""
        tenant_id = self._require_tenant(tenant_id)
        if not self.documents.exists(tenant_id):
            return []
        return self.manifests.manifest_paths(self.version_for(tenant_id), self.active_features(tenant_id))
