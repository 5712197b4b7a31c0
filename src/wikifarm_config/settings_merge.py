"""Settings merge engine.

Settings are kept as ``name -> tier -> value`` maps. A tier is ``"default"``,
a tag (farm, version, lifecycle state, ``ext-<feature>``) or a wiki id.
A tier prefixed with ``+`` merges into the value accumulated so far instead
of replacing it:

    {
        "wgLogo": {"default": "/logo.png", "ext-Theme": "/theme.png"},
        "wgGroupPermissions": {"default": {...}, "+private": {"*": {"read": false}}}
    }

``build_settings`` folds a wiki's override document into the base settings
and ``materialize`` collapses the tiers into the final flat configuration.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
import logging
from pathlib import Path
from typing import Any

from wikifarm_config.adapters.json_files import load_json_file
from wikifarm_config.domain.override_document import EXEMPT, OverrideDocument
from wikifarm_config.farm_config import FarmConfig


logger = logging.getLogger(__name__)

SettingsByTag = dict[str, dict[str, Any]]

DEFAULT_TIER = "default"
MERGE_PREFIX = "+"
AUTOPROMOTE_ONCE_MARKER = "once"

LANGUAGE_CODE = "wgLanguageCode"

# Lifecycle state -> setting name
STATE_SETTINGS = {
    "private": "cwPrivate",
    "closed": "cwClosed",
    "locked": "cwLocked",
    "inactive": "cwInactive",
    "experimental": "cwExperimental",
}
EXEMPTABLE_STATES = frozenset({"inactive"})

EXTRA_NAMESPACES = "wgExtraNamespaces"
NAMESPACES_SEARCHED = "wgNamespacesToBeSearchedDefault"
NAMESPACES_WITH_SUBPAGES = "wgNamespacesWithSubpages"
NAMESPACE_CONTENT_MODELS = "wgNamespaceContentModels"
CONTENT_NAMESPACES = "wgContentNamespaces"
NAMESPACE_PROTECTION = "wgNamespaceProtection"
NAMESPACE_ALIASES = "wgNamespaceAliases"

GROUP_PERMISSIONS = "wgGroupPermissions"
ADD_GROUPS = "wgAddGroups"
REMOVE_GROUPS = "wgRemoveGroups"
GROUPS_ADD_TO_SELF = "wgGroupsAddToSelf"
GROUPS_REMOVE_FROM_SELF = "wgGroupsRemoveFromSelf"
AUTOPROMOTE = "wgAutopromote"
AUTOPROMOTE_ONCE = "wgAutopromoteOnce"


def site_params(tenant_id: str, farm: FarmConfig) -> dict[str, str]:
    """Substitution parameters for ``$lang``, ``$site`` and ``$wiki``."""
    lang = farm.label_of(tenant_id) if farm.owns(tenant_id) else tenant_id
    return {"lang": lang, "site": farm.db_suffix, "wiki": tenant_id}


def replace_params(value: Any, params: Mapping[str, str]) -> Any:
    if isinstance(value, str):
        for key, replacement in params.items():
            value = value.replace(f"${key}", replacement)
        return value
    if isinstance(value, dict):
        return {key: replace_params(item, params) for key, item in value.items()}
    if isinstance(value, list):
        return [replace_params(item, params) for item in value]
    return value


def _merge(base: Any, extra: Any) -> Any:
    if isinstance(base, dict) and isinstance(extra, dict):
        merged = dict(base)
        merged.update(extra)
        return merged
    if isinstance(base, list) and isinstance(extra, list):
        return [*base, *extra]
    return extra


class _TierWriter:
    """Accumulates values for one tier across many settings."""

    def __init__(self, tier: str) -> None:
        self.tier = tier
        self.settings: SettingsByTag = {}

    def set(self, name: str, value: Any) -> None:
        self.settings.setdefault(name, {})[self.tier] = value

    def mapping(self, name: str) -> dict[Any, Any]:
        return self.settings.setdefault(name, {}).setdefault(self.tier, {})

    def sequence(self, name: str) -> list[Any]:
        return self.settings.setdefault(name, {}).setdefault(self.tier, [])


class SettingsMergeEngine:
    """Fold override documents into tiered settings and materialize them."""

    def __init__(self, base_settings: Mapping[str, Mapping[str, Any]] | None = None) -> None:
        self.base_settings: SettingsByTag = {}
        for name, by_tier in (base_settings or {}).items():
            if not isinstance(by_tier, Mapping):
                raise ValueError(f"Setting '{name}' must map tiers to values, got {type(by_tier).__name__}")
            self.base_settings[name] = dict(by_tier)

    @classmethod
    def from_json_file(cls, path: Path) -> SettingsMergeEngine:
        data = load_json_file(path)
        if data is None:
            logger.warning("Base settings %s not found; starting from an empty configuration", path)
            return cls()
        if not isinstance(data, dict):
            raise ValueError(f"Base settings {path} must be a JSON object")
        return cls(data)

    # --- override document fan-out --------------------------------------

    @staticmethod
    def override_settings(document: OverrideDocument, tier: str = DEFAULT_TIER) -> SettingsByTag:
        """Expand an override document into tiered settings under ``tier``.

        Iteration is explicitly ordered (namespaces by id, groups and
        setting names by name) so identical documents give identical output.
        """
        out = _TierWriter(tier)

        for name in sorted(document.core):
            out.set(name, document.core[name])

        for state, name in STATE_SETTINGS.items():
            value = document.states.get(state)
            if state in EXEMPTABLE_STATES and value == EXEMPT:
                out.set(name, EXEMPT)
            else:
                out.set(name, value != EXEMPT and bool(value))

        for name in sorted(document.settings):
            out.set(name, document.settings[name])

        for namespace_id, namespace_name, namespace in document.resolved_namespaces():
            key = str(namespace_id)
            if namespace_name is not None:
                out.mapping(EXTRA_NAMESPACES)[key] = namespace_name
            out.mapping(NAMESPACES_SEARCHED)[key] = namespace.searchable
            out.mapping(NAMESPACES_WITH_SUBPAGES)[key] = namespace.subpages
            out.mapping(NAMESPACE_CONTENT_MODELS)[key] = namespace.contentmodel
            if namespace.content:
                out.sequence(CONTENT_NAMESPACES).append(namespace_id)
            if namespace.protection:
                out.mapping(NAMESPACE_PROTECTION)[key] = [namespace.protection]
            # alias -> id, not id -> alias
            for alias in namespace.aliases:
                out.mapping(NAMESPACE_ALIASES)[alias] = namespace_id

        for group in sorted(document.permissions):
            permission = document.permissions[group]
            for right in permission.permissions:
                out.mapping(GROUP_PERMISSIONS).setdefault(group, {})[right] = True

            for name, groups in (
                (ADD_GROUPS, permission.addgroups),
                (REMOVE_GROUPS, permission.removegroups),
                (GROUPS_ADD_TO_SELF, permission.addself),
                (GROUPS_REMOVE_FROM_SELF, permission.removeself),
            ):
                if groups:
                    out.mapping(name).setdefault(group, []).extend(groups)

            if permission.autopromote is not None:
                criteria = list(permission.autopromote)
                if AUTOPROMOTE_ONCE_MARKER in criteria:
                    criteria.remove(AUTOPROMOTE_ONCE_MARKER)
                    out.mapping(AUTOPROMOTE_ONCE)[group] = criteria
                else:
                    out.mapping(AUTOPROMOTE)[group] = criteria

        return out.settings

    # --- tier folding ----------------------------------------------------

    def build_settings(
        self,
        tenant_id: str,
        document: OverrideDocument | None,
        tags: Sequence[str],
    ) -> SettingsByTag:
        """Return the settings that can apply to ``tenant_id``.

        Base tiers unrelated to the wiki's tags are dropped; the override
        document lands in the wiki's own tier, the most specific one.
        """
        applicable = {DEFAULT_TIER, tenant_id, *tags}
        merged: SettingsByTag = {}
        for name, by_tier in self.base_settings.items():
            kept = {
                tier: value
                for tier, value in by_tier.items()
                if tier.removeprefix(MERGE_PREFIX) in applicable
            }
            if kept:
                merged[name] = kept

        if document is not None:
            for name, by_tier in self.override_settings(document, tier=tenant_id).items():
                merged.setdefault(name, {}).update(by_tier)
        return merged

    @staticmethod
    def materialize(
        settings_by_tag: Mapping[str, Mapping[str, Any]],
        tenant_id: str,
        tags: Iterable[str],
        params: Mapping[str, str] | None = None,
    ) -> dict[str, Any]:
        """Collapse tiers into one value per setting.

        Tiers apply in the order ``default``, each tag in sequence, then the
        wiki id; a later plain tier replaces, a later ``+`` tier merges.
        Settings without any applicable tier are omitted.
        """
        order = [DEFAULT_TIER, *tags, tenant_id]
        result: dict[str, Any] = {}
        for name in sorted(settings_by_tag):
            by_tier = settings_by_tag[name]
            found = False
            value: Any = None
            for tier in order:
                if tier in by_tier:
                    value = by_tier[tier]
                    found = True
                merge_tier = MERGE_PREFIX + tier
                if merge_tier in by_tier:
                    value = _merge(value, by_tier[merge_tier]) if found else by_tier[merge_tier]
                    found = True
            if found:
                result[name] = replace_params(value, params or {})
        return result
