"""Farm topology configuration using Pydantic.

A farm is a group of wikis sharing a public domain, a database suffix and a
set of supported code versions. The topology is read from ``farms.json``:

    {
        "default_farm": "wikitide",
        "farms": [
            {
                "name": "wikitide",
                "db_suffix": "wikitide",
                "domain": "wikitide.org",
                "default_server": "wikitide.org",
                "global_database": "wtglobal",
                "central_wiki": "metawikitide",
                "versions": {"stable": "1.40", "beta": "1.41"},
                "beta_host": "test1.wikitide.net"
            }
        ]
    }

Configuration validates at load time (fail fast).
"""

import json
from pathlib import Path
from typing import Annotated

from pydantic import BaseModel, Field, model_validator


STABLE_CHANNEL = "stable"
BETA_CHANNEL = "beta"


class FarmConfig(BaseModel):
    """Configuration for a single wiki farm."""

    model_config = {"extra": "forbid"}

    name: Annotated[
        str,
        Field(
            description="Farm tag; also the suffix of the farm's list file names",
            pattern=r"^[a-z][a-z0-9_-]*$",
            min_length=2,
            max_length=64,
        ),
    ]

    db_suffix: Annotated[
        str,
        Field(
            description="Short tag appended to a subdomain label to form a tenant id (e.g. 'foo' + 'wikitide')",
            pattern=r"^[a-z0-9_]+$",
            min_length=1,
        ),
    ]

    domain: Annotated[
        str,
        Field(
            description="Public domain suffix of the farm's wikis",
            examples=["wikitide.org"],
            min_length=3,
        ),
    ]

    default_server: Annotated[
        str,
        Field(
            description="Host served when no wiki matches (operator landing page)",
            examples=["wikitide.org"],
            min_length=3,
        ),
    ]

    global_database: Annotated[
        str,
        Field(description="Database holding the farm's wiki registry"),
    ] = ""

    central_wiki: Annotated[
        str,
        Field(description="Tenant id of the farm's central (meta) wiki"),
    ] = ""

    versions: Annotated[
        dict[str, str],
        Field(
            min_length=1,
            description="Release channel -> code version (e.g. {'stable': '1.40', 'beta': '1.41'})",
            examples=[{"alpha": "1.42", "beta": "1.41", "lts": "1.39", "stable": "1.40"}],
        ),
    ]

    beta_host: Annotated[
        str | None,
        Field(description="Server node on which the beta channel is the default version"),
    ] = None

    @model_validator(mode="after")
    def validate_stable_channel(self) -> "FarmConfig":
        """Ensure a stable version exists so every wiki has a fallback."""
        if STABLE_CHANNEL not in self.versions:
            raise ValueError(f"Farm '{self.name}' must define a '{STABLE_CHANNEL}' version")
        return self

    def default_channel(self, node_name: str) -> str:
        """Return the release channel used for wikis without a pinned version."""
        if self.beta_host and node_name == self.beta_host and BETA_CHANNEL in self.versions:
            return BETA_CHANNEL
        return STABLE_CHANNEL

    def default_version(self, node_name: str) -> str:
        return self.versions[self.default_channel(node_name)]

    def owns(self, tenant_id: str) -> bool:
        """Check whether a tenant id carries this farm's suffix."""
        return len(tenant_id) > len(self.db_suffix) and tenant_id.endswith(self.db_suffix)

    def label_of(self, tenant_id: str) -> str:
        """Strip the farm suffix from a tenant id ('foowikitide' -> 'foo')."""
        return tenant_id[: -len(self.db_suffix)]


class FarmDeployment(BaseModel):
    """Complete farm topology for one deployment."""

    model_config = {"extra": "forbid"}

    default_farm: Annotated[
        str | None,
        Field(description="Farm used for ids that carry no known suffix (defaults to the first farm)"),
    ] = None

    farms: Annotated[
        list[FarmConfig],
        Field(min_length=1, description="Farms served by this deployment"),
    ]

    @model_validator(mode="after")
    def validate_unique_farms(self) -> "FarmDeployment":
        """Ensure farm names and database suffixes are unique."""
        names = [farm.name for farm in self.farms]
        if len(names) != len(set(names)):
            duplicates = sorted({n for n in names if names.count(n) > 1})
            raise ValueError(f"Duplicate farm names found: {duplicates}")

        suffixes = [farm.db_suffix for farm in self.farms]
        if len(suffixes) != len(set(suffixes)):
            duplicates = sorted({s for s in suffixes if suffixes.count(s) > 1})
            raise ValueError(f"Duplicate farm db_suffix values found: {duplicates}")

        if self.default_farm is not None and self.default_farm not in names:
            raise ValueError(f"default_farm '{self.default_farm}' is not a configured farm")
        return self

    @classmethod
    def from_json_file(cls, path: Path) -> "FarmDeployment":
        """Load the farm topology from a JSON file.

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not path.exists():
            raise FileNotFoundError(f"Farm config not found: {path}")

        with path.open() as f:
            data = json.load(f)

        return cls.model_validate(data)

    def get_farm(self, name: str) -> FarmConfig | None:
        for farm in self.farms:
            if farm.name == name:
                return farm
        return None

    def get_default_farm(self) -> FarmConfig:
        if self.default_farm is not None:
            farm = self.get_farm(self.default_farm)
            if farm is not None:
                return farm
        return self.farms[0]

    def farm_for_tenant(self, tenant_id: str) -> FarmConfig:
        """Return the farm whose suffix ends the tenant id.

        The longest suffix wins so that 'wiki' and 'wikitide' can coexist.
        """
        matches = [farm for farm in self.farms if farm.owns(tenant_id)]
        if not matches:
            return self.get_default_farm()
        return max(matches, key=lambda farm: len(farm.db_suffix))

    def farm_for_domain(self, domain: str) -> FarmConfig | None:
        for farm in self.farms:
            if farm.domain == domain:
                return farm
        return None

    def farm_for_default_server(self, host: str) -> FarmConfig | None:
        for farm in self.farms:
            if farm.default_server == host:
                return farm
        return None
