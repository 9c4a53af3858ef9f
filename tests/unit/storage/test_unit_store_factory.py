# tests/unit/storage/test_unit_store_factory.py — v1
"""Tests for storage/store_factory.py and SQLite persistence."""

from __future__ import annotations

from peoplegraph.config.settings import Settings
from peoplegraph.core.models import Person
from peoplegraph.storage.memory_store import InMemoryKnowledgeStore
from peoplegraph.storage.sqlite_store import SqliteKnowledgeStore
from peoplegraph.storage.store_factory import create_store


class TestCreateStore:
    def test_default_is_memory(self):
        assert isinstance(create_store(), InMemoryKnowledgeStore)

    def test_memory_backend(self, settings):
        assert isinstance(create_store(settings), InMemoryKnowledgeStore)

    def test_sqlite_backend(self, tmp_path):
        s = Settings(_env_file=None, store_backend="sqlite",
                     store_path=tmp_path / "nested" / "kb.db")
        kb = create_store(s)
        try:
            assert isinstance(kb, SqliteKnowledgeStore)
            assert (tmp_path / "nested" / "kb.db").exists()
        finally:
            kb.close()


class TestSqlitePersistence:
    def test_data_survives_reopen(self, tmp_path):
        path = tmp_path / "kb.db"
        first = SqliteKnowledgeStore(path)
        with first.transaction():
            first.people.add(Person(id="p1", name="Demis Hassabis", external_id="Q3022141"))
        first.close()

        second = SqliteKnowledgeStore(path)
        try:
            assert second.people.get_by_external_id("Q3022141").name == "Demis Hassabis"
        finally:
            second.close()

    def test_in_memory_path(self):
        kb = SqliteKnowledgeStore(":memory:")
        kb.people.add(Person(id="p1", name="A"))
        assert kb.people.get("p1") is not None
        kb.close()
