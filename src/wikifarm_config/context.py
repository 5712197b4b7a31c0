"""Per-request context passed explicitly to every component."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class RequestContext:
    """Everything known about the caller before any lookup happens.

    A web request carries a host; a CLI invocation may instead name the wiki
    and code version directly. Components never read process globals for
    this information.
    """

    host: str | None = None
    """Request host (e.g. 'foo.wikitide.org'); None for CLI invocations."""

    cli: bool = False
    """True for maintenance/CLI callers, which may address deleted wikis."""

    tenant_id: str | None = None
    """Explicit wiki id supplied by a CLI invocation."""

    version: str | None = None
    """Explicit code version supplied by a CLI invocation."""

    @classmethod
    def for_request(cls, host: str) -> RequestContext:
        return cls(host=host)

    @classmethod
    def for_cli(cls, tenant_id: str | None = None, version: str | None = None) -> RequestContext:
        return cls(cli=True, tenant_id=tenant_id, version=version)
