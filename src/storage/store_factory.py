# src/storage/store_factory.py — v1
"""Factory for knowledge store instantiation."""

from __future__ import annotations

from peoplegraph.config.settings import Settings
from peoplegraph.storage.base_repository import BaseKnowledgeStore


def create_store(settings: Settings | None = None) -> BaseKnowledgeStore:
    """Instantiate the configured store backend.

    Args:
        settings: Application settings. Defaults to an in-memory store.

    Returns:
        Configured BaseKnowledgeStore implementation.
    """
    backend = "memory" if settings is None else settings.store_backend

    if backend == "memory":
        from peoplegraph.storage.memory_store import InMemoryKnowledgeStore
        return InMemoryKnowledgeStore()

    if backend == "sqlite":
        from peoplegraph.storage.sqlite_store import SqliteKnowledgeStore
        assert settings is not None
        return SqliteKnowledgeStore(db_path=settings.store_path)

    raise ValueError(f"Unsupported store backend: {backend!r}")
