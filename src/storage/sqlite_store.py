# src/storage/sqlite_store.py — v1
"""SQLite-backed knowledge store (STORE_BACKEND=sqlite).

Uses stdlib sqlite3 — no external dependency. Each record is stored as a
JSON document next to the indexed columns the repositories filter on.
The connection runs in autocommit mode; `transaction()` wraps a block in an
explicit BEGIN/COMMIT and rolls back on any exception.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

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

_SCHEMA = """
CREATE TABLE IF NOT EXISTS people (
    id TEXT PRIMARY KEY,
    external_id TEXT UNIQUE,
    data TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS organizations (
    id TEXT PRIMARY KEY,
    external_id TEXT,
    data TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_org_external_id ON organizations(external_id);
CREATE TABLE IF NOT EXISTS affiliations (
    id TEXT PRIMARY KEY,
    organization_id TEXT NOT NULL,
    person_id TEXT NOT NULL,
    data TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_aff_org ON affiliations(organization_id);
CREATE INDEX IF NOT EXISTS idx_aff_person ON affiliations(person_id);
CREATE TABLE IF NOT EXISTS relations (
    id TEXT PRIMARY KEY,
    source_id TEXT NOT NULL,
    target_id TEXT NOT NULL,
    relation_type TEXT NOT NULL,
    provenance TEXT NOT NULL,
    created_at TEXT NOT NULL,
    data TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_rel_key ON relations(source_id, target_id, relation_type);
CREATE INDEX IF NOT EXISTS idx_rel_provenance ON relations(provenance);
CREATE TABLE IF NOT EXISTS contents (
    id TEXT PRIMARY KEY,
    person_id TEXT NOT NULL,
    source_type TEXT NOT NULL,
    data TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_content_person ON contents(person_id);
"""


class SqliteEntityRepository(EntityRepository):
    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def get(self, person_id: str) -> Person | None:
        row = self._conn.execute(
            "SELECT data FROM people WHERE id = ?", (person_id,)
        ).fetchone()
        return Person.model_validate_json(row[0]) if row else None

    def get_by_external_id(self, external_id: str) -> Person | None:
        row = self._conn.execute(
            "SELECT data FROM people WHERE external_id = ?", (external_id,)
        ).fetchone()
        return Person.model_validate_json(row[0]) if row else None

    def list_all(self) -> list[Person]:
        rows = self._conn.execute("SELECT data FROM people ORDER BY id").fetchall()
        return [Person.model_validate_json(r[0]) for r in rows]

    def add(self, person: Person) -> Person:
        try:
            self._conn.execute(
                "INSERT INTO people (id, external_id, data) VALUES (?, ?, ?)",
                (person.id, person.external_id, person.model_dump_json()),
            )
        except sqlite3.IntegrityError as e:
            raise ValueError(f"Cannot add person {person.id}: {e}") from e
        return person

    def update(self, person: Person) -> Person:
        try:
            cursor = self._conn.execute(
                "UPDATE people SET external_id = ?, data = ? WHERE id = ?",
                (person.external_id, person.model_dump_json(), person.id),
            )
        except sqlite3.IntegrityError as e:
            raise ValueError(f"Cannot update person {person.id}: {e}") from e
        if cursor.rowcount == 0:
            raise KeyError(person.id)
        return person

    def delete(self, person_id: str) -> bool:
        cursor = self._conn.execute("DELETE FROM people WHERE id = ?", (person_id,))
        return cursor.rowcount > 0


class SqliteOrganizationRepository(OrganizationRepository):
    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def get(self, organization_id: str) -> Organization | None:
        row = self._conn.execute(
            "SELECT data FROM organizations WHERE id = ?", (organization_id,)
        ).fetchone()
        return Organization.model_validate_json(row[0]) if row else None

    def list_all(self) -> list[Organization]:
        rows = self._conn.execute(
            "SELECT data FROM organizations ORDER BY id"
        ).fetchall()
        return [Organization.model_validate_json(r[0]) for r in rows]

    def add(self, organization: Organization) -> Organization:
        try:
            self._conn.execute(
                "INSERT INTO organizations (id, external_id, data) VALUES (?, ?, ?)",
                (
                    organization.id,
                    organization.external_id,
                    organization.model_dump_json(),
                ),
            )
        except sqlite3.IntegrityError as e:
            raise ValueError(f"Cannot add organization {organization.id}: {e}") from e
        return organization

    def update(self, organization: Organization) -> Organization:
        cursor = self._conn.execute(
            "UPDATE organizations SET external_id = ?, data = ? WHERE id = ?",
            (
                organization.external_id,
                organization.model_dump_json(),
                organization.id,
            ),
        )
        if cursor.rowcount == 0:
            raise KeyError(organization.id)
        return organization

    def delete(self, organization_id: str) -> bool:
        cursor = self._conn.execute(
            "DELETE FROM organizations WHERE id = ?", (organization_id,)
        )
        return cursor.rowcount > 0

    def list_affiliations(
        self,
        organization_id: str | None = None,
        person_id: str | None = None,
    ) -> list[AffiliationFact]:
        query = "SELECT data FROM affiliations WHERE 1 = 1"
        params: list[str] = []
        if organization_id is not None:
            query += " AND organization_id = ?"
            params.append(organization_id)
        if person_id is not None:
            query += " AND person_id = ?"
            params.append(person_id)
        rows = self._conn.execute(query + " ORDER BY id", params).fetchall()
        return [AffiliationFact.model_validate_json(r[0]) for r in rows]

    def add_affiliation(self, fact: AffiliationFact) -> AffiliationFact:
        if self.get(fact.organization_id) is None:
            raise KeyError(f"Unknown organization {fact.organization_id}")
        self._conn.execute(
            "INSERT INTO affiliations (id, organization_id, person_id, data) "
            "VALUES (?, ?, ?, ?)",
            (fact.id, fact.organization_id, fact.person_id, fact.model_dump_json()),
        )
        return fact

    def move_affiliation(self, fact_id: str, organization_id: str) -> None:
        if self.get(organization_id) is None:
            raise KeyError(f"Unknown organization {organization_id}")
        row = self._conn.execute(
            "SELECT data FROM affiliations WHERE id = ?", (fact_id,)
        ).fetchone()
        if row is None:
            raise KeyError(fact_id)
        fact = AffiliationFact.model_validate_json(row[0])
        fact = fact.model_copy(update={"organization_id": organization_id})
        self._conn.execute(
            "UPDATE affiliations SET organization_id = ?, data = ? WHERE id = ?",
            (organization_id, fact.model_dump_json(), fact_id),
        )

    def delete_affiliation(self, fact_id: str) -> bool:
        cursor = self._conn.execute(
            "DELETE FROM affiliations WHERE id = ?", (fact_id,)
        )
        return cursor.rowcount > 0

    def count_references(self, organization_id: str) -> int:
        row = self._conn.execute(
            "SELECT COUNT(*) FROM affiliations WHERE organization_id = ?",
            (organization_id,),
        ).fetchone()
        return int(row[0])


class SqliteRelationRepository(RelationRepository):
    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def get(self, edge_id: str) -> RelationEdge | None:
        row = self._conn.execute(
            "SELECT data FROM relations WHERE id = ?", (edge_id,)
        ).fetchone()
        return RelationEdge.model_validate_json(row[0]) if row else None

    def find(
        self,
        source_id: str | None = None,
        target_id: str | None = None,
        relation_type: RelationType | None = None,
    ) -> list[RelationEdge]:
        query = "SELECT data FROM relations WHERE 1 = 1"
        params: list[str] = []
        if source_id is not None:
            query += " AND source_id = ?"
            params.append(source_id)
        if target_id is not None:
            query += " AND target_id = ?"
            params.append(target_id)
        if relation_type is not None:
            query += " AND relation_type = ?"
            params.append(RelationType(relation_type).value)
        rows = self._conn.execute(
            query + " ORDER BY created_at, id", params
        ).fetchall()
        return [RelationEdge.model_validate_json(r[0]) for r in rows]

    def list_all(self, provenance: str | None = None) -> list[RelationEdge]:
        if provenance is None:
            rows = self._conn.execute(
                "SELECT data FROM relations ORDER BY created_at, id"
            ).fetchall()
        else:
            rows = self._conn.execute(
                "SELECT data FROM relations WHERE provenance = ? "
                "ORDER BY created_at, id",
                (provenance,),
            ).fetchall()
        return [RelationEdge.model_validate_json(r[0]) for r in rows]

    def add(self, edge: RelationEdge) -> RelationEdge:
        self._conn.execute(
            "INSERT INTO relations "
            "(id, source_id, target_id, relation_type, provenance, created_at, data) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                edge.id,
                edge.source_id,
                edge.target_id,
                edge.relation_type.value,
                edge.provenance,
                edge.created_at.isoformat(),
                edge.model_dump_json(),
            ),
        )
        return edge

    def update(self, edge: RelationEdge) -> RelationEdge:
        cursor = self._conn.execute(
            "UPDATE relations SET source_id = ?, target_id = ?, relation_type = ?, "
            "provenance = ?, data = ? WHERE id = ?",
            (
                edge.source_id,
                edge.target_id,
                edge.relation_type.value,
                edge.provenance,
                edge.model_dump_json(),
                edge.id,
            ),
        )
        if cursor.rowcount == 0:
            raise KeyError(edge.id)
        return edge

    def delete(self, edge_id: str) -> bool:
        cursor = self._conn.execute("DELETE FROM relations WHERE id = ?", (edge_id,))
        return cursor.rowcount > 0


class SqliteContentRepository(ContentRepository):
    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def get(self, item_id: str) -> ContentItem | None:
        row = self._conn.execute(
            "SELECT data FROM contents WHERE id = ?", (item_id,)
        ).fetchone()
        return ContentItem.model_validate_json(row[0]) if row else None

    def list_for_person(self, person_id: str) -> list[ContentItem]:
        rows = self._conn.execute(
            "SELECT data FROM contents WHERE person_id = ? ORDER BY id", (person_id,)
        ).fetchall()
        return [ContentItem.model_validate_json(r[0]) for r in rows]

    def list_all(self, source_types: list[str] | None = None) -> list[ContentItem]:
        rows = self._conn.execute("SELECT data FROM contents ORDER BY id").fetchall()
        items = [ContentItem.model_validate_json(r[0]) for r in rows]
        if source_types is not None:
            items = [i for i in items if i.source_type in source_types]
        return items

    def add(self, item: ContentItem) -> ContentItem:
        self._conn.execute(
            "INSERT OR REPLACE INTO contents (id, person_id, source_type, data) "
            "VALUES (?, ?, ?, ?)",
            (item.id, item.person_id, item.source_type, item.model_dump_json()),
        )
        return item

    def delete(self, item_id: str) -> bool:
        cursor = self._conn.execute("DELETE FROM contents WHERE id = ?", (item_id,))
        return cursor.rowcount > 0


class SqliteKnowledgeStore(BaseKnowledgeStore):
    """SQLite-backed store shared by every batch job."""

    def __init__(self, db_path: Path | str) -> None:
        if str(db_path) == ":memory:":
            target = ":memory:"
        else:
            path = Path(db_path).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            target = str(path)
        # Autocommit; transaction() issues BEGIN/COMMIT explicitly
        self._conn = sqlite3.connect(target, isolation_level=None)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)
        self._depth = 0

        self.people = SqliteEntityRepository(self._conn)
        self.organizations = SqliteOrganizationRepository(self._conn)
        self.relations = SqliteRelationRepository(self._conn)
        self.contents = SqliteContentRepository(self._conn)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._depth > 0:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        self._conn.execute("BEGIN")
        self._depth = 1
        try:
            yield
        except BaseException:
            self._conn.execute("ROLLBACK")
            logger.debug("SQLite transaction rolled back")
            raise
        else:
            self._conn.execute("COMMIT")
        finally:
            self._depth = 0

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
