"""Observability module: structured logging and per-request log context."""

from wikifarm_config.observability.context import (
    bind_log_context,
    get_log_context,
    log_context,
    reset_log_context,
)
from wikifarm_config.observability.logging import JsonFormatter, configure_logging


__all__ = [
    "JsonFormatter",
    "bind_log_context",
    "configure_logging",
    "get_log_context",
    "log_context",
    "reset_log_context",
]
