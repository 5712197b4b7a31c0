"""On-disk cache of materialized wiki configuration.

Each wiki's snapshot is stored as ``config-<wiki>.json``:

    {"mtime": 1700000000.25, "version": "1.41", "globals": {...}, "extensions": [...]}

``mtime`` is the fingerprint: the newest modification time among the
sources the snapshot was computed from. A stored snapshot is served only
while its fingerprint equals the freshly computed one and it was computed
for the code version the caller resolves to. A request for another version
(a CLI ``--version`` or ``WIKI_VERSION``) recomputes and replaces it.

Concurrent requests for a cold wiki may each recompute the snapshot; the
computation is deterministic and writes are atomic renames, so the worst
outcome is redundant work.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
import logging
from pathlib import Path
import time

from wikifarm_config.adapters.json_files import CacheCorruptedError, atomic_write_json, file_mtime, load_json_file
from wikifarm_config.domain.model import ConfigSnapshot


logger = logging.getLogger(__name__)


class SnapshotCacheCorruptedError(CacheCorruptedError):
    """A stored snapshot exists but cannot be decoded; serving it is unsafe."""


def compute_fingerprint(sources: Iterable[Path]) -> float:
    """Max mtime over ``sources``; missing files contribute nothing."""
    mtimes = [mtime for mtime in (file_mtime(path) for path in sources) if mtime is not None]
    return max(mtimes, default=0.0)


class ConfigSnapshotCache:
    """Fingerprint-validated snapshot files in a cache directory."""

    def __init__(
        self,
        cache_directory: Path,
        sources: Callable[[str], Iterable[Path]],
        *,
        revalidate_delay_seconds: float = 2,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.cache_directory = cache_directory
        self.sources = sources
        self.revalidate_delay_seconds = revalidate_delay_seconds
        self.clock = clock

    def path_for(self, tenant_id: str) -> Path:
        return self.cache_directory / f"config-{tenant_id}.json"

    def fingerprint(self, tenant_id: str) -> float:
        return compute_fingerprint(self.sources(tenant_id))

    def read(self, tenant_id: str, fingerprint: float, *, version: str | None = None) -> ConfigSnapshot | None:
        """Return the stored snapshot if its fingerprint matches, else None.

        When ``version`` is given the snapshot must also have been computed
        for that code version.

        Raises:
            SnapshotCacheCorruptedError: If the stored file cannot be decoded
        """
        path = self.path_for(tenant_id)
        try:
            data = load_json_file(path)
        except CacheCorruptedError as err:
            raise SnapshotCacheCorruptedError(path, str(err.__cause__ or err)) from err

        if data is None:
            logger.debug("Config cache miss for %s: no snapshot", tenant_id)
            return None
        if not isinstance(data, dict) or "mtime" not in data:
            raise SnapshotCacheCorruptedError(path, "not a snapshot object")
        if data["mtime"] != fingerprint:
            logger.debug(
                "Config cache miss for %s: stored mtime %s != %s", tenant_id, data["mtime"], fingerprint
            )
            return None
        if version is not None and data.get("version") != version:
            logger.debug(
                "Config cache miss for %s: stored version %s != %s", tenant_id, data.get("version"), version
            )
            return None
        return ConfigSnapshot.from_dict(data)

    def write(self, tenant_id: str, snapshot: ConfigSnapshot) -> bool:
        """Persist a snapshot; failures are logged and reported as False."""
        path = self.path_for(tenant_id)
        try:
            atomic_write_json(path, snapshot.to_dict())
        except OSError as err:
            logger.warning("Config cache write for %s failed: %s", tenant_id, err)
            return False
        return True

    def should_write(self, fingerprint: float) -> bool:
        """Only persist once the newest source is older than the revalidation delay."""
        return self.clock() > fingerprint + self.revalidate_delay_seconds

    def get(
        self,
        tenant_id: str,
        compute: Callable[[float], ConfigSnapshot],
        *,
        fingerprint: float | None = None,
        version: str | None = None,
    ) -> ConfigSnapshot:
        """Serve the stored snapshot or recompute it.

        ``compute`` receives the fresh fingerprint and returns a snapshot
        carrying it (and ``version``, when one is given). The freshly
        computed snapshot is returned even when it is not written back.
        """
        if fingerprint is None:
            fingerprint = self.fingerprint(tenant_id)

        cached = self.read(tenant_id, fingerprint, version=version)
        if cached is not None:
            logger.debug("Config cache hit for %s", tenant_id)
            return cached

        snapshot = compute(fingerprint)
        if self.should_write(fingerprint):
            self.write(tenant_id, snapshot)
        else:
            logger.debug("Skipping config cache write for %s: sources changed too recently", tenant_id)
        return snapshot
