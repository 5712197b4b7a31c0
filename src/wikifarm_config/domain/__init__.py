"""Domain layer - tenant records, list files, override documents and snapshots.

No dependencies on the filesystem or the registry database.
"""

from wikifarm_config.domain.model import (
    DEFAULT_SITENAME,
    DEFAULT_TENANT,
    ConfigSnapshot,
    ListFile,
    TenantEntry,
    TenantRecord,
)
from wikifarm_config.domain.override_document import (
    EXEMPT,
    NamespaceEntry,
    OverrideDocument,
    PermissionEntry,
)


__all__ = [
    "DEFAULT_SITENAME",
    "DEFAULT_TENANT",
    "EXEMPT",
    "ConfigSnapshot",
    "ListFile",
    "NamespaceEntry",
    "OverrideDocument",
    "PermissionEntry",
    "TenantEntry",
    "TenantRecord",
]
