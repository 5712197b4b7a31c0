"""Per-wiki override document written by the settings editor.

The document lives at ``<cache_directory>/<tenant>.json``. It is produced by
an external component and is read-only here.

Example:
    {
        "core": {"wgLanguageCode": "en"},
        "states": {"private": false, "closed": false, "inactive": "exempt"},
        "settings": {"wgLogo": "https://static.example.org/logo.png"},
        "namespaces": {
            "Project": {"id": 4, "searchable": true, "subpages": true,
                        "contentmodel": "wikitext", "content": false,
                        "protection": "", "aliases": ["WP"]}
        },
        "permissions": {
            "autoconfirmed": {"permissions": ["move"], "addgroups": [],
                              "removegroups": [], "addself": [],
                              "removeself": [],
                              "autopromote": ["once", ["editcount", 10]]}
        },
        "extensions": ["cite", "echo"]
    }
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, Field, field_validator


EXEMPT = "exempt"
"""State value meaning 'configured off for tagging purposes'."""


def _none_to_list(value: object) -> object:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return value


class NamespaceEntry(BaseModel):
    """One namespace definition.

    Documents are keyed either by namespace name (with an ``id`` field) or by
    namespace id (with an optional ``name`` field).
    """

    model_config = {"extra": "ignore"}

    id: int | None = None
    name: str | None = None
    searchable: bool = False
    subpages: bool = False
    contentmodel: str = "wikitext"
    content: bool = False
    protection: str | None = None
    aliases: list[str] = Field(default_factory=list)

    @field_validator("aliases", mode="before")
    @classmethod
    def _normalize_aliases(cls, value: object) -> object:
        return _none_to_list(value)


class PermissionEntry(BaseModel):
    """Rights and group management for one user group."""

    model_config = {"extra": "ignore"}

    permissions: list[str] = Field(default_factory=list)
    addgroups: list[str] = Field(default_factory=list)
    removegroups: list[str] = Field(default_factory=list)
    addself: list[str] = Field(default_factory=list)
    removeself: list[str] = Field(default_factory=list)
    autopromote: list[Any] | None = None

    @field_validator("permissions", "addgroups", "removegroups", "addself", "removeself", mode="before")
    @classmethod
    def _normalize_lists(cls, value: object) -> object:
        return _none_to_list(value)


class OverrideDocument(BaseModel):
    """Per-wiki settings payload."""

    model_config = {"extra": "ignore"}

    core: Annotated[
        dict[str, Any],
        Field(default_factory=dict, description="Scalar core settings such as wgLanguageCode"),
    ]

    states: Annotated[
        dict[str, bool | str | int | None],
        Field(
            default_factory=dict,
            description="Lifecycle flags such as closed or private; 'exempt' switches a flag off for tagging",
        ),
    ]

    settings: Annotated[
        dict[str, Any],
        Field(default_factory=dict, description="Arbitrary setting name -> value"),
    ]

    namespaces: Annotated[
        dict[str, NamespaceEntry],
        Field(default_factory=dict, description="Namespace definitions keyed by name (or by id)"),
    ]

    permissions: Annotated[
        dict[str, PermissionEntry],
        Field(default_factory=dict, description="User group -> rights and group management"),
    ]

    extensions: Annotated[
        list[str],
        Field(default_factory=list, description="Feature keys enabled for this wiki"),
    ]

    @field_validator("core", "states", "settings", "namespaces", "permissions", mode="before")
    @classmethod
    def _normalize_maps(cls, value: object) -> object:
        # PHP encoders emit [] for an empty map
        if value is None or value == []:
            return {}
        return value

    @field_validator("extensions", mode="before")
    @classmethod
    def _normalize_extensions(cls, value: object) -> object:
        return _none_to_list(value)

    def resolved_namespaces(self) -> list[tuple[int, str | None, NamespaceEntry]]:
        """Return ``(id, name, entry)`` triples ordered by namespace id."""
        resolved: list[tuple[int, str | None, NamespaceEntry]] = []
        for key, entry in self.namespaces.items():
            if entry.id is not None:
                resolved.append((entry.id, entry.name or key, entry))
            else:
                try:
                    namespace_id = int(key)
                except ValueError:
                    raise ValueError(f"Namespace '{key}' has no id") from None
                resolved.append((namespace_id, entry.name, entry))
        resolved.sort(key=lambda item: item[0])
        return resolved
