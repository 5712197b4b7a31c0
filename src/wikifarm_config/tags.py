"""Configuration tags of a wiki.

Tags select which tier of a setting applies. The order is fixed and
defines precedence (later tags win): farm, code version, lifecycle states,
then one ``ext-`` tag per active feature.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
import re
from typing import TYPE_CHECKING

from wikifarm_config.domain.override_document import EXEMPT


if TYPE_CHECKING:
    from wikifarm_config.adapters.override_store import OverrideDocumentStore
    from wikifarm_config.directory import TenantDirectory


EXTENSION_TAG_PREFIX = "ext-"

_WHITESPACE = re.compile(r"\s+")


def extension_tag(name: str) -> str:
    """'Semantic MediaWiki' -> 'ext-SemanticMediaWiki'."""
    return EXTENSION_TAG_PREFIX + _WHITESPACE.sub("", name)


def state_tags(states: Mapping[str, object]) -> list[str]:
    return [state for state, value in states.items() if value != EXEMPT and bool(value)]


def build_tags(
    farm: str,
    version: str,
    states: Mapping[str, object] | None = None,
    extensions: Iterable[str] = (),
) -> tuple[str, ...]:
    tags = [farm, version]
    tags.extend(state_tags(states or {}))
    tags.extend(extension_tag(name) for name in extensions)
    return tuple(tags)


class TagResolver:
    """Compute the ordered tag sequence for a wiki."""

    def __init__(
        self,
        directory: TenantDirectory,
        documents: OverrideDocumentStore,
        active_features: Callable[[str], Iterable[str]],
    ) -> None:
        self.directory = directory
        self.documents = documents
        self.active_features = active_features

    def compute_tags(self, tenant_id: str, *, version: str | None = None) -> tuple[str, ...]:
        farm = self.directory.farm_for(tenant_id)
        document = self.documents.load(tenant_id)
        return build_tags(
            farm.name,
            version or self.directory.get_version(tenant_id),
            document.states if document is not None else {},
            self.active_features(tenant_id),
        )
