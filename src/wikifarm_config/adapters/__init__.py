"""Adapters layer - list files, JSON persistence and the wiki registry."""

from .json_files import CacheCorruptedError, atomic_write_json, file_mtime, load_json_file
from .list_file_store import (
    ListFileStore,
    MaintenanceFilter,
    active_list_name,
    databases_list_name,
    deleted_list_name,
    version_list_name,
)
from .override_store import OverrideDocumentStore
from .registry_source import (
    AbstractRegistrySource,
    InMemoryRegistrySource,
    RegistryRow,
    SqliteRegistrySource,
)


__all__ = [
    "AbstractRegistrySource",
    "CacheCorruptedError",
    "InMemoryRegistrySource",
    "ListFileStore",
    "MaintenanceFilter",
    "OverrideDocumentStore",
    "RegistryRow",
    "SqliteRegistrySource",
    "active_list_name",
    "atomic_write_json",
    "databases_list_name",
    "deleted_list_name",
    "file_mtime",
    "load_json_file",
    "version_list_name",
]
