# src/storage/memory_store.py — v1
"""In-memory knowledge store (STORE_BACKEND=memory).

Transactions snapshot every table on entry and restore the snapshot if the
block raises. Used by tests and dry runs.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from peoplegraph.core.models import (
    AffiliationFact,
    ContentItem,
    Organization,
    Person,
    RelationEdge,
    RelationType,
)
from peoplegraph.storage.base_repository import (
    BaseKnowledgeStore,
    ContentRepository,
    EntityRepository,
    OrganizationRepository,
    RelationRepository,
)

logger = logging.getLogger(__name__)


class _Tables:
    """Plain dict tables shared by the repositories."""

    def __init__(self) -> None:
        self.people: dict[str, Person] = {}
        self.organizations: dict[str, Organization] = {}
        self.affiliations: dict[str, AffiliationFact] = {}
        self.relations: dict[str, RelationEdge] = {}
        self.contents: dict[str, ContentItem] = {}

    def snapshot(self) -> dict[str, Any]:
        return copy.deepcopy(self.__dict__)

    def restore(self, state: dict[str, Any]) -> None:
        self.__dict__.update(state)


def _copy(model: Any) -> Any:
    return model.model_copy(deep=True)


class InMemoryEntityRepository(EntityRepository):
    def __init__(self, tables: _Tables) -> None:
        self._t = tables

    def get(self, person_id: str) -> Person | None:
        person = self._t.people.get(person_id)
        return _copy(person) if person else None

    def get_by_external_id(self, external_id: str) -> Person | None:
        for person in self._t.people.values():
            if person.external_id == external_id:
                return _copy(person)
        return None

    def list_all(self) -> list[Person]:
        return [_copy(p) for _, p in sorted(self._t.people.items())]

    def add(self, person: Person) -> Person:
        if person.id in self._t.people:
            raise ValueError(f"Person {person.id} already exists")
        if person.external_id and self.get_by_external_id(person.external_id):
            raise ValueError(f"External id {person.external_id} already in use")
        self._t.people[person.id] = _copy(person)
        return person

    def update(self, person: Person) -> Person:
        if person.id not in self._t.people:
            raise KeyError(person.id)
        if person.external_id:
            owner = self.get_by_external_id(person.external_id)
            if owner is not None and owner.id != person.id:
                raise ValueError(f"External id {person.external_id} already in use")
        self._t.people[person.id] = _copy(person)
        return person

    def delete(self, person_id: str) -> bool:
        return self._t.people.pop(person_id, None) is not None


class InMemoryOrganizationRepository(OrganizationRepository):
    def __init__(self, tables: _Tables) -> None:
        self._t = tables

    def get(self, organization_id: str) -> Organization | None:
        org = self._t.organizations.get(organization_id)
        return _copy(org) if org else None

    def list_all(self) -> list[Organization]:
        return [_copy(o) for _, o in sorted(self._t.organizations.items())]

    def add(self, organization: Organization) -> Organization:
        if organization.id in self._t.organizations:
            raise ValueError(f"Organization {organization.id} already exists")
        self._t.organizations[organization.id] = _copy(organization)
        return organization

    def update(self, organization: Organization) -> Organization:
        if organization.id not in self._t.organizations:
            raise KeyError(organization.id)
        self._t.organizations[organization.id] = _copy(organization)
        return organization

    def delete(self, organization_id: str) -> bool:
        return self._t.organizations.pop(organization_id, None) is not None

    def list_affiliations(
        self,
        organization_id: str | None = None,
        person_id: str | None = None,
    ) -> list[AffiliationFact]:
        return [
            _copy(f)
            for _, f in sorted(self._t.affiliations.items())
            if (organization_id is None or f.organization_id == organization_id)
            and (person_id is None or f.person_id == person_id)
        ]

    def add_affiliation(self, fact: AffiliationFact) -> AffiliationFact:
        if fact.organization_id not in self._t.organizations:
            raise KeyError(f"Unknown organization {fact.organization_id}")
        self._t.affiliations[fact.id] = _copy(fact)
        return fact

    def move_affiliation(self, fact_id: str, organization_id: str) -> None:
        if organization_id not in self._t.organizations:
            raise KeyError(f"Unknown organization {organization_id}")
        fact = self._t.affiliations[fact_id]
        self._t.affiliations[fact_id] = fact.model_copy(
            update={"organization_id": organization_id}
        )

    def delete_affiliation(self, fact_id: str) -> bool:
        return self._t.affiliations.pop(fact_id, None) is not None


class InMemoryRelationRepository(RelationRepository):
    def __init__(self, tables: _Tables) -> None:
        self._t = tables

    def _ordered(self) -> list[RelationEdge]:
        return sorted(self._t.relations.values(), key=lambda e: (e.created_at, e.id))

    def get(self, edge_id: str) -> RelationEdge | None:
        edge = self._t.relations.get(edge_id)
        return _copy(edge) if edge else None

    def find(
        self,
        source_id: str | None = None,
        target_id: str | None = None,
        relation_type: RelationType | None = None,
    ) -> list[RelationEdge]:
        return [
            _copy(e)
            for e in self._ordered()
            if (source_id is None or e.source_id == source_id)
            and (target_id is None or e.target_id == target_id)
            and (relation_type is None or e.relation_type == relation_type)
        ]

    def list_all(self, provenance: str | None = None) -> list[RelationEdge]:
        return [
            _copy(e)
            for e in self._ordered()
            if provenance is None or e.provenance == provenance
        ]

    def add(self, edge: RelationEdge) -> RelationEdge:
        if edge.id in self._t.relations:
            raise ValueError(f"Edge {edge.id} already exists")
        self._t.relations[edge.id] = _copy(edge)
        return edge

    def update(self, edge: RelationEdge) -> RelationEdge:
        if edge.id not in self._t.relations:
            raise KeyError(edge.id)
        self._t.relations[edge.id] = _copy(edge)
        return edge

    def delete(self, edge_id: str) -> bool:
        return self._t.relations.pop(edge_id, None) is not None


class InMemoryContentRepository(ContentRepository):
    def __init__(self, tables: _Tables) -> None:
        self._t = tables

    def get(self, item_id: str) -> ContentItem | None:
        item = self._t.contents.get(item_id)
        return _copy(item) if item else None

    def list_for_person(self, person_id: str) -> list[ContentItem]:
        return [
            _copy(i)
            for _, i in sorted(self._t.contents.items())
            if i.person_id == person_id
        ]

    def list_all(self, source_types: list[str] | None = None) -> list[ContentItem]:
        return [
            _copy(i)
            for _, i in sorted(self._t.contents.items())
            if source_types is None or i.source_type in source_types
        ]

    def add(self, item: ContentItem) -> ContentItem:
        self._t.contents[item.id] = _copy(item)
        return item

    def delete(self, item_id: str) -> bool:
        return self._t.contents.pop(item_id, None) is not None


class InMemoryKnowledgeStore(BaseKnowledgeStore):
    """Dict-backed store with snapshot/restore transactions."""

    def __init__(self) -> None:
        self._tables = _Tables()
        self._depth = 0
        self.people = InMemoryEntityRepository(self._tables)
        self.organizations = InMemoryOrganizationRepository(self._tables)
        self.relations = InMemoryRelationRepository(self._tables)
        self.contents = InMemoryContentRepository(self._tables)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._depth > 0:
            # Nested: the outermost transaction owns commit/rollback
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        snapshot = self._tables.snapshot()
        self._depth = 1
        try:
            yield
        except BaseException:
            self._tables.restore(snapshot)
            logger.debug("In-memory transaction rolled back")
            raise
        finally:
            self._depth = 0
