"""Semantic memory store with content-hash deduplication and pluggable backends."""

__version__ = "0.1.0"
