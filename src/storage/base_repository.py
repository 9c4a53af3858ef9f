# src/storage/base_repository.py — v1
"""Abstract repository interfaces over the shared knowledge store.

Components receive these interfaces instead of touching the store directly.
Every logical write (entity creation, organization merge, edge repair) runs
inside `BaseKnowledgeStore.transaction()` so a crash leaves the store as if
the operation never happened.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager

from peoplegraph.core.models import (
    AffiliationFact,
    ContentItem,
    Organization,
    Person,
    RelationEdge,
    RelationType,
)


class EntityRepository(ABC):
    """Person records."""

    @abstractmethod
    def get(self, person_id: str) -> Person | None:
        """Fetch one person by internal id."""

    @abstractmethod
    def get_by_external_id(self, external_id: str) -> Person | None:
        """Fetch the (unique) person carrying an external identifier."""

    @abstractmethod
    def list_all(self) -> list[Person]:
        """All persons, ordered by id."""

    @abstractmethod
    def add(self, person: Person) -> Person:
        """Insert a new person. Raises ValueError on a reused external id."""

    @abstractmethod
    def update(self, person: Person) -> Person:
        """Replace a stored person."""

    @abstractmethod
    def delete(self, person_id: str) -> bool:
        """Remove a person. Returns False if it did not exist."""


class OrganizationRepository(ABC):
    """Organization records and the affiliation facts pointing at them."""

    @abstractmethod
    def get(self, organization_id: str) -> Organization | None:
        """Fetch one organization."""

    @abstractmethod
    def list_all(self) -> list[Organization]:
        """All organizations, ordered by id."""

    @abstractmethod
    def add(self, organization: Organization) -> Organization:
        """Insert a new organization."""

    @abstractmethod
    def update(self, organization: Organization) -> Organization:
        """Replace a stored organization."""

    @abstractmethod
    def delete(self, organization_id: str) -> bool:
        """Remove an organization record."""

    @abstractmethod
    def list_affiliations(
        self,
        organization_id: str | None = None,
        person_id: str | None = None,
    ) -> list[AffiliationFact]:
        """Affiliation facts, optionally filtered by organization and/or person."""

    @abstractmethod
    def add_affiliation(self, fact: AffiliationFact) -> AffiliationFact:
        """Insert an affiliation fact."""

    @abstractmethod
    def move_affiliation(self, fact_id: str, organization_id: str) -> None:
        """Re-point an affiliation fact at another organization."""

    @abstractmethod
    def delete_affiliation(self, fact_id: str) -> bool:
        """Remove an affiliation fact."""

    def count_references(self, organization_id: str) -> int:
        """Number of affiliation facts referencing an organization."""
        return len(self.list_affiliations(organization_id=organization_id))


class RelationRepository(ABC):
    """Directed typed edges between persons."""

    @abstractmethod
    def get(self, edge_id: str) -> RelationEdge | None:
        """Fetch one edge."""

    @abstractmethod
    def find(
        self,
        source_id: str | None = None,
        target_id: str | None = None,
        relation_type: RelationType | None = None,
    ) -> list[RelationEdge]:
        """Edges matching every given field, oldest first."""

    @abstractmethod
    def list_all(self, provenance: str | None = None) -> list[RelationEdge]:
        """All edges (optionally from one provenance), oldest first."""

    @abstractmethod
    def add(self, edge: RelationEdge) -> RelationEdge:
        """Store an edge. No duplicate check at this level."""

    @abstractmethod
    def update(self, edge: RelationEdge) -> RelationEdge:
        """Replace a stored edge (used for reversal)."""

    @abstractmethod
    def delete(self, edge_id: str) -> bool:
        """Remove an edge."""


class ContentRepository(ABC):
    """Content items associated with persons."""

    @abstractmethod
    def get(self, item_id: str) -> ContentItem | None:
        """Fetch one content item."""

    @abstractmethod
    def list_for_person(self, person_id: str) -> list[ContentItem]:
        """Content items of one person."""

    @abstractmethod
    def list_all(self, source_types: list[str] | None = None) -> list[ContentItem]:
        """All content items, optionally restricted to some source types."""

    @abstractmethod
    def add(self, item: ContentItem) -> ContentItem:
        """Insert a content item."""

    @abstractmethod
    def delete(self, item_id: str) -> bool:
        """Remove a content item."""


class BaseKnowledgeStore(ABC):
    """Bundle of repositories sharing one transactional backend."""

    people: EntityRepository
    organizations: OrganizationRepository
    relations: RelationRepository
    contents: ContentRepository

    @abstractmethod
    def transaction(self) -> AbstractContextManager[None]:
        """All-or-nothing unit of work. Nested calls join the outer one."""

    def close(self) -> None:
        """Release backend resources."""
