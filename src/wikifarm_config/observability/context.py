"""Log context propagation across threads and async boundaries."""

from __future__ import annotations

from contextvars import ContextVar
from uuid import uuid4


# Per-request fields added to every log record
log_context: ContextVar[dict | None] = ContextVar("log_context", default=None)


def generate_request_id() -> str:
    """Generate a 32-char hex request ID."""
    return uuid4().hex


def get_log_context() -> dict:
    """Get current log context, creating one with a request_id when absent."""
    ctx = log_context.get()
    if ctx is None or not ctx.get("request_id"):
        ctx = {"request_id": generate_request_id(), **(ctx or {})}
        log_context.set(ctx)
    return ctx


def bind_log_context(**fields: object) -> None:
    """Add fields (e.g. tenant) to the current context, keeping existing ones."""
    ctx = get_log_context()
    log_context.set({**ctx, **fields})


def reset_log_context() -> None:
    log_context.set(None)
