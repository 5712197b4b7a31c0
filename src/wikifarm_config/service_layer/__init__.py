"""Service layer - per-request orchestration of configuration resolution."""

from wikifarm_config.service_layer.resolver import ResolvedRequest, WikiConfigResolver


__all__ = [
    "ResolvedRequest",
    "WikiConfigResolver",
]
