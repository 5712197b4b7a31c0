"""Backing wiki registry queries.

The registry is the source of truth the list files mirror. Three read
shapes are needed: active wikis, all non-deleted ("combi") wikis with an
optional version filter, and deleted wikis.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass
import logging
from pathlib import Path
import sqlite3


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RegistryRow:
    """One row of the wiki registry."""

    tenant_id: str
    cluster: str
    site_name: str
    url: str | None = None
    version: str | None = None
    closed: bool = False
    deleted: bool = False
    inactive: bool = False
    locked: bool = False


class AbstractRegistrySource(ABC):
    """Abstract query interface over the wiki registry."""

    @abstractmethod
    def active_tenants(self) -> dict[str, RegistryRow]:
        """Wikis that are not closed, deleted or inactive."""
        raise NotImplementedError

    @abstractmethod
    def combi_tenants(self, version: str | None = None) -> dict[str, RegistryRow]:
        """All non-deleted wikis, optionally only those pinned to ``version``."""
        raise NotImplementedError

    @abstractmethod
    def deleted_tenants(self) -> dict[str, RegistryRow]:
        """Deleted wikis."""
        raise NotImplementedError


class InMemoryRegistrySource(AbstractRegistrySource):
    """Registry held in memory; used by tests and tooling."""

    def __init__(self, rows: Iterable[RegistryRow] = ()) -> None:
        self._rows: dict[str, RegistryRow] = {row.tenant_id: row for row in rows}

    def active_tenants(self) -> dict[str, RegistryRow]:
        return {
            key: row
            for key, row in self._rows.items()
            if not (row.closed or row.deleted or row.inactive)
        }

    def combi_tenants(self, version: str | None = None) -> dict[str, RegistryRow]:
        return {
            key: row
            for key, row in self._rows.items()
            if not row.deleted and (version is None or row.version == version)
        }

    def deleted_tenants(self) -> dict[str, RegistryRow]:
        return {key: row for key, row in self._rows.items() if row.deleted}


class SqliteRegistrySource(AbstractRegistrySource):
    """Registry stored in a SQLite database with a ``cw_wikis`` table."""

    _COLUMNS = (
        "wiki_dbname, wiki_dbcluster, wiki_sitename, wiki_url, wiki_version, "
        "wiki_closed, wiki_deleted, wiki_inactive, wiki_locked"
    )

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path

    def active_tenants(self) -> dict[str, RegistryRow]:
        return self._select("wiki_closed = 0 AND wiki_deleted = 0 AND wiki_inactive = 0")

    def combi_tenants(self, version: str | None = None) -> dict[str, RegistryRow]:
        if version is None:
            return self._select("wiki_deleted = 0")
        return self._select("wiki_deleted = 0 AND wiki_version = ?", (version,))

    def deleted_tenants(self) -> dict[str, RegistryRow]:
        return self._select("wiki_deleted = 1")

    def _select(self, where: str, params: tuple[object, ...] = ()) -> dict[str, RegistryRow]:
        query = f"SELECT {self._COLUMNS} FROM cw_wikis WHERE {where} ORDER BY wiki_dbname"
        if not self.db_path.exists():
            raise FileNotFoundError(f"Registry database not found: {self.db_path}")

        conn = sqlite3.connect(self.db_path)
        try:
            rows = conn.execute(query, params).fetchall()
        finally:
            conn.close()

        logger.debug("Registry query returned %d rows (%s)", len(rows), where)
        return {
            row[0]: RegistryRow(
                tenant_id=row[0],
                cluster=row[1],
                site_name=row[2],
                url=row[3],
                version=row[4],
                closed=bool(row[5]),
                deleted=bool(row[6]),
                inactive=bool(row[7]),
                locked=bool(row[8]),
            )
            for row in rows
        }
