"""Domain model - tenant records, list files and configuration snapshots.

The domain layer has no dependencies on the filesystem or the registry
database. List files use single-letter keys on disk (``s`` site name,
``c`` cluster, ``v`` version, ``u`` url); the translation lives here so the
rest of the package works with named attributes.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


DEFAULT_TENANT = "default"
"""Sentinel identity served for the operator's default server."""

DEFAULT_SITENAME = "No sitename set."


@dataclass(frozen=True, slots=True)
class TenantEntry:
    """Partial tenant record as stored in a list file.

    'active' and 'deleted' lists only carry the site name and cluster;
    'combi' lists add the code version and, when one is set, the url.
    """

    site_name: str | None = None
    cluster: str | None = None
    version: str | None = None
    url: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TenantEntry:
        return cls(
            site_name=data.get("s"),
            cluster=data.get("c"),
            version=data.get("v"),
            url=data.get("u"),
        )

    def to_dict(self) -> dict[str, str]:
        payload: dict[str, str] = {}
        if self.site_name is not None:
            payload["s"] = self.site_name
        if self.cluster is not None:
            payload["c"] = self.cluster
        if self.version is not None:
            payload["v"] = self.version
        if self.url is not None:
            payload["u"] = self.url
        return payload


@dataclass(frozen=True, slots=True)
class TenantRecord:
    """Full view of one wiki as seen by the tenant directory."""

    tenant_id: str
    farm: str
    cluster: str | None
    site_name: str | None
    url: str | None
    version: str | None
    deleted: bool = False


@dataclass(frozen=True, slots=True)
class ListFile:
    """One generated list file (active, combi, deleted or per-version)."""

    name: str
    entries: dict[str, TenantEntry] = field(default_factory=dict)
    deleted_list: bool = False
    excluded: frozenset[str] = frozenset()
    """Keys removed from ``entries`` by a maintenance filter."""

    @classmethod
    def empty(cls, name: str) -> ListFile:
        return cls(name=name)

    @classmethod
    def from_payload(cls, name: str, payload: Mapping[str, Any]) -> ListFile:
        """Build a list file from its decoded JSON document.

        ``combi`` takes precedence over ``databases`` when both are present.
        A top-level ``"deleted": "databases"`` marks a deleted-wiki list.
        An empty map may be encoded as ``[]``.
        """
        raw = payload.get("combi")
        if not isinstance(raw, Mapping):
            raw = payload.get("databases")
        if not isinstance(raw, Mapping):
            raw = {}
        entries = {key: TenantEntry.from_dict(value or {}) for key, value in raw.items()}
        return cls(
            name=name,
            entries=entries,
            deleted_list=payload.get("deleted") == "databases",
        )

    def __contains__(self, tenant_id: object) -> bool:
        return tenant_id in self.entries

    def __len__(self) -> int:
        return len(self.entries)

    def get(self, tenant_id: str) -> TenantEntry | None:
        return self.entries.get(tenant_id)

    def keys(self) -> list[str]:
        return list(self.entries)


@dataclass(frozen=True, slots=True)
class ConfigSnapshot:
    """Fully merged configuration of one wiki plus its active features.

    A snapshot is only valid while ``fingerprint`` equals the freshly
    computed fingerprint of its sources and ``version`` equals the code
    version the request resolves to.
    """

    fingerprint: float
    globals: dict[str, Any]
    extensions: tuple[str, ...] = ()
    version: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "mtime": self.fingerprint,
            "globals": self.globals,
            "extensions": list(self.extensions),
        }
        if self.version is not None:
            payload["version"] = self.version
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ConfigSnapshot:
        return cls(
            fingerprint=data["mtime"],
            globals=dict(data.get("globals") or {}),
            extensions=tuple(data.get("extensions") or ()),
            version=data.get("version"),
        )
