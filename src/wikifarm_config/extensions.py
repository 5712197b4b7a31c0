"""Feature (extension) declarations and per-wiki activation.

A feature is active for a wiki when it is declared in the global registry,
enabled in the wiki's override document and not disabled for the whole
process. The resolved list is bundled into the config snapshot, so on a
warm cache no document or registry is read at all.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
import logging
from pathlib import Path
from typing import Any

import orjson
from pydantic import BaseModel, Field

from wikifarm_config.adapters.json_files import atomic_write_json, load_json_file
from wikifarm_config.domain.override_document import OverrideDocument


logger = logging.getLogger(__name__)

EXTENSION_LIST_FILE = "extension-list.json"


class ExtensionDeclaration(BaseModel):
    """One entry of the global feature registry."""

    model_config = {"extra": "allow"}

    name: str = Field(min_length=1, description="Display name; also the name used by manifests and tags")


class ExtensionRegistry:
    """Global feature declarations keyed by feature key, in declaration order."""

    def __init__(self, declarations: Mapping[str, ExtensionDeclaration] | None = None) -> None:
        self.declarations: dict[str, ExtensionDeclaration] = dict(declarations or {})

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ExtensionRegistry:
        return cls({key: ExtensionDeclaration.model_validate(value) for key, value in data.items()})

    @classmethod
    def from_json_file(cls, path: Path) -> ExtensionRegistry:
        data = load_json_file(path)
        if data is None:
            logger.warning("Extension registry %s not found; no features can be enabled", path)
            return cls()
        return cls.from_mapping(data)

    def __contains__(self, key: object) -> bool:
        return key in self.declarations

    def __len__(self) -> int:
        return len(self.declarations)

    def resolve(self, enabled: Iterable[str], disabled: Iterable[str] = ()) -> tuple[str, ...]:
        """Return display names of declared ∩ enabled ∖ disabled features."""
        enabled_keys = set(enabled)
        disabled_keys = set(disabled)
        active: list[str] = []
        for key, declaration in self.declarations.items():
            if key not in enabled_keys:
                continue
            if key in disabled_keys or declaration.name in disabled_keys:
                continue
            active.append(declaration.name)
        return tuple(active)


class ExtensionActivation:
    """Active features of one wiki, memoized for the lifetime of the instance."""

    def __init__(
        self,
        load_registry: Callable[[], ExtensionRegistry],
        load_document: Callable[[], OverrideDocument | None],
        *,
        disabled: Iterable[str] = (),
        cached: Callable[[], tuple[str, ...] | None] | None = None,
    ) -> None:
        self._load_registry = load_registry
        self._load_document = load_document
        self._disabled = frozenset(disabled)
        self._cached = cached
        self._active: tuple[str, ...] | None = None
        self._active_set: frozenset[str] | None = None

    def compute(self) -> tuple[str, ...]:
        """Resolve the active features from the registry and override document."""
        document = self._load_document()
        if document is None:
            return ()
        return self._load_registry().resolve(document.extensions, self._disabled)

    def active_features(self) -> tuple[str, ...]:
        if self._active is None:
            cached = self._cached() if self._cached is not None else None
            self._active = cached if cached is not None else self.compute()
        return self._active

    @property
    def active_set(self) -> frozenset[str]:
        if self._active_set is None:
            self._active_set = frozenset(self.active_features())
        return self._active_set

    def is_active(self, name: str) -> bool:
        return name in self.active_set

    def any_active(self, *names: str) -> bool:
        return not self.active_set.isdisjoint(names)

    def all_active(self, *names: str) -> bool:
        return self.active_set.issuperset(names)


class ExtensionManifestIndex:
    """Per-version index of feature name -> manifest path.

    The index is cached as ``<cache_directory>/<version>/extension-list.json``
    and rebuilt by scanning the installed runtime when absent.
    """

    def __init__(self, cache_directory: Path, runtime_path: Callable[[str], Path]) -> None:
        self.cache_directory = cache_directory
        self.runtime_path = runtime_path

    def index_path(self, version: str) -> Path:
        return self.cache_directory / version / EXTENSION_LIST_FILE

    def build(self, version: str) -> dict[str, str]:
        root = self.runtime_path(version)
        manifests = sorted(root.glob("extensions/*/extension*.json")) + sorted(root.glob("skins/*/skin.json"))
        index: dict[str, str] = {}
        for manifest in manifests:
            try:
                info = orjson.loads(manifest.read_bytes())
            except (OSError, orjson.JSONDecodeError) as err:
                logger.warning("Skipping unreadable manifest %s: %s", manifest, err)
                continue
            name = info.get("name") if isinstance(info, dict) else None
            if name:
                index.setdefault(name, str(manifest))
        return index

    def load(self, version: str) -> dict[str, str]:
        path = self.index_path(version)
        index = load_json_file(path)
        if index is not None:
            return index

        index = self.build(version)
        try:
            atomic_write_json(path, index)
        except OSError as err:
            logger.warning("Could not persist extension list %s: %s", path, err)
        return index

    def manifest_paths(self, version: str, names: Iterable[str]) -> list[Path]:
        """Manifest files to queue for ``names``; entries without a JSON manifest are skipped."""
        index = self.load(version)
        paths: list[Path] = []
        for name in names:
            location = index.get(name)
            if location and location.endswith(".json"):
                paths.append(Path(location))
        return paths
