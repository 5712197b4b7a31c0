"""Per-wiki configuration resolution and caching for a multi-farm wiki host."""

__version__ = "0.1.0"
