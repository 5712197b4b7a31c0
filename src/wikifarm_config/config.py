"""Centralized process configuration for wikifarm-config using Pydantic Settings."""

from pathlib import Path
import platform

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(raw_value: str | None) -> list[str]:
    """Split comma-separated config strings into trimmed entries."""

    if not raw_value:
        return []
    return [entry.strip() for entry in raw_value.split(",") if entry.strip()]


class Settings(BaseSettings):
    """Strictly typed configuration loaded from environment variables.

    Holds everything that is fixed for the lifetime of a process: where the
    cache and configuration directories live, which clusters are under
    maintenance and which features are disabled everywhere. Farm topology
    lives in ``farms.json`` (see ``farm_config.FarmDeployment``).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",  # Ignore extra env vars not defined in model
    )

    # Directories
    cache_directory: Path = Field(
        default=Path("/srv/mediawiki/cache"),
        description="Directory holding list files, override documents and config snapshots",
    )
    config_directory: Path = Field(
        default=Path("/srv/mediawiki/config"),
        description="Directory holding farms.json, settings.json and extensions.json",
    )
    mediawiki_directory: Path = Field(
        default=Path("/srv/mediawiki"),
        description="Directory holding one installed runtime per code version",
    )

    # Configuration sources (relative to config_directory)
    farms_file: str = Field(default="farms.json", description="Farm topology document")
    settings_file: str = Field(default="settings.json", description="Tenant-independent base settings")
    extensions_file: str = Field(default="extensions.json", description="Feature declaration registry")
    runtime_marker: str = Field(
        default="includes/Defines.php",
        description="File inside an installed runtime whose mtime changes on upgrade",
    )

    # Overrides
    wiki_version: str | None = Field(
        default=None,
        description="Force a code version for every tenant (controlled rollout/testing)",
    )
    database_clusters_maintenance: str = Field(
        default="", description="Comma-separated database clusters currently under maintenance"
    )
    disabled_extensions: str = Field(
        default="", description="Comma-separated feature keys disabled for every tenant of this process"
    )

    # Snapshot cache
    revalidate_delay_seconds: int = Field(
        default=2,
        ge=0,
        description="Minimum age of the newest source before a recomputed snapshot is written back",
    )

    node_name: str = Field(default_factory=platform.node, description="Host name of this server")

    # Logging
    log_level: str = Field(default="info", description="Logging level")
    log_json: bool = Field(default=True, description="Emit structured JSON logs")

    def get_maintenance_clusters(self) -> list[str]:
        """Get list of database clusters under maintenance."""
        return _split_csv(self.database_clusters_maintenance)

    def get_disabled_extensions(self) -> frozenset[str]:
        """Get the set of feature keys disabled process-wide."""
        return frozenset(_split_csv(self.disabled_extensions))

    @property
    def farms_path(self) -> Path:
        return self.config_directory / self.farms_file

    @property
    def settings_path(self) -> Path:
        return self.config_directory / self.settings_file

    @property
    def extensions_path(self) -> Path:
        return self.config_directory / self.extensions_file

    def runtime_path(self, version: str) -> Path:
        """Return the install directory of the runtime for ``version``."""
        return self.mediawiki_directory / version

    def runtime_marker_path(self, version: str) -> Path:
        return self.runtime_path(version) / self.runtime_marker
