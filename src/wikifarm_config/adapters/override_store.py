"""Read-only access to per-wiki override documents."""

from __future__ import annotations

import logging
from pathlib import Path

import orjson
from pydantic import ValidationError

from wikifarm_config.adapters.json_files import file_mtime
from wikifarm_config.domain.override_document import OverrideDocument


logger = logging.getLogger(__name__)


class OverrideDocumentStore:
    """Load ``<cache_directory>/<tenant>.json`` documents, once per instance."""

    def __init__(self, cache_directory: Path) -> None:
        self.cache_directory = cache_directory
        self._documents: dict[str, OverrideDocument | None] = {}

    def path_for(self, tenant_id: str) -> Path:
        return self.cache_directory / f"{tenant_id}.json"

    def mtime(self, tenant_id: str) -> float | None:
        return file_mtime(self.path_for(tenant_id))

    def exists(self, tenant_id: str) -> bool:
        return self.path_for(tenant_id).is_file()

    def load(self, tenant_id: str) -> OverrideDocument | None:
        """Return the wiki's override document, or None when it has none.

        A document that cannot be decoded or validated is logged and treated
        as absent; it is owned by the settings editor, not by this cache.
        """
        if tenant_id not in self._documents:
            self._documents[tenant_id] = self._load(tenant_id)
        return self._documents[tenant_id]

    def _load(self, tenant_id: str) -> OverrideDocument | None:
        path = self.path_for(tenant_id)
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            return None
        try:
            return OverrideDocument.model_validate(orjson.loads(data))
        except (orjson.JSONDecodeError, ValidationError) as err:
            logger.error("Ignoring malformed override document %s: %s", path, err)
            return None
