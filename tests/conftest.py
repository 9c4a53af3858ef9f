# tests/conftest.py — v2
"""Shared test fixtures for all unit tests.

Provides in-memory and SQLite stores, a small sample graph of people,
organizations and advisor edges, and settings without .env influence.
No network: external collaborators are mocked per test.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest

from peoplegraph.config.settings import Settings
from peoplegraph.core.models import (
    AffiliationFact,
    ContentItem,
    Organization,
    Person,
    RelationEdge,
    RelationType,
)
from peoplegraph.storage.memory_store import InMemoryKnowledgeStore
from peoplegraph.storage.sqlite_store import SqliteKnowledgeStore

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def at(minutes: int) -> datetime:
    """Deterministic creation timestamps."""
    return T0 + timedelta(minutes=minutes)


def make_edge(
    source: str,
    target: str,
    relation_type: RelationType = RelationType.ADVISOR,
    minute: int = 0,
    **kwargs,
) -> RelationEdge:
    return RelationEdge(
        source_id=source,
        target_id=target,
        relation_type=relation_type,
        created_at=at(minute),
        **kwargs,
    )


# === FIXTURES: Stores ===


@pytest.fixture
def store() -> InMemoryKnowledgeStore:
    """Empty in-memory store."""
    return InMemoryKnowledgeStore()


@pytest.fixture
def sqlite_store(tmp_path: Path):
    """Empty SQLite store in a temp directory."""
    s = SqliteKnowledgeStore(tmp_path / "kb.db")
    yield s
    s.close()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from any .env file."""
    return Settings(
        _env_file=None,
        store_backend="memory",
        store_path=tmp_path / "kb.db",
        external_cooldown_s=0.0,
        external_retry_delay_s=0.0,
    )


# === FIXTURES: Sample data ===


@pytest.fixture
def people() -> dict[str, Person]:
    """Four people with stable ids."""
    return {
        "hinton": Person(
            id="p1", name="Geoffrey Hinton", external_id="Q92743",
            aliases=["Geoff Hinton"], topics=["deep learning"],
        ),
        "lecun": Person(
            id="p2", name="Yann LeCun", external_id="Q3571662",
            topics=["deep learning", "computer vision"],
        ),
        "sutskever": Person(
            id="p3", name="Ilya Sutskever", topics=["deep learning"],
        ),
        "li": Person(
            id="p4", name="Fei-Fei Li", external_id="Q18686488",
            topics=["computer vision"],
        ),
    }


@pytest.fixture
def populated_store(store: InMemoryKnowledgeStore, people: dict[str, Person]):
    """Store with people, two organizations, affiliations and edges."""
    for person in people.values():
        store.people.add(person)
    store.organizations.add(Organization(id="o1", name="Google", external_id="Q95"))
    store.organizations.add(
        Organization(id="o2", name="University of Toronto", external_id="Q180865",
                     org_type="university")
    )
    store.organizations.add_affiliation(
        AffiliationFact(id="a1", person_id="p1", organization_id="o1",
                        role="researcher", start_date=date(2013, 3, 1),
                        end_date=date(2023, 5, 1))
    )
    store.organizations.add_affiliation(
        AffiliationFact(id="a2", person_id="p3", organization_id="o1",
                        role="research scientist", start_date=date(2013, 3, 1),
                        end_date=date(2015, 12, 1))
    )
    store.organizations.add_affiliation(
        AffiliationFact(id="a3", person_id="p1", organization_id="o2",
                        role="professor", start_date=date(1987, 1, 1))
    )
    store.organizations.add_affiliation(
        AffiliationFact(id="a4", person_id="p3", organization_id="o2",
                        role="PhD student", start_date=date(2005, 9, 1),
                        end_date=date(2012, 6, 1))
    )
    store.relations.add(make_edge("p3", "p1", minute=1, id="e1"))
    store.contents.add(
        ContentItem(id="c1", person_id="p1", source_type="youtube", title="Talk")
    )
    return store
