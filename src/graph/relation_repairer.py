# src/graph/relation_repairer.py — v2
"""Relation consistency repairer.

Passes:
  1. Exact duplicates: per (source, target, type) keep the earliest edge.
  2. Advisor contradictions: (A, B) and (B, A) both present. Resolved only
     from a human-curated ground truth table; anything else is left in place
     and flagged for manual review.
  3. Ground truth enforcement: an advisor edge pointing the wrong way for a
     ground truth entry is reversed.

Plus a one-time bulk direction migration for edges coming from a source that
used the opposite convention.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from peoplegraph.core.errors import UnresolvedContradiction
from peoplegraph.core.models import ContradictionPair, RelationEdge, RelationType
from peoplegraph.graph.entity_matcher import EntityMatcher
from peoplegraph.graph.relation_store import RelationGraphStore, ReverseOutcome
from peoplegraph.storage.base_repository import BaseKnowledgeStore

logger = logging.getLogger(__name__)


class GroundTruthTable:
    """Known-correct advisor directions as (student_id, advisor_id) pairs.

    A pair means the edge (student, advisor, advisor) is correct.
    """

    def __init__(self, pairs: list[tuple[str, str]] | None = None) -> None:
        self._pairs: set[tuple[str, str]] = set(pairs or [])

    def __len__(self) -> int:
        return len(self._pairs)

    def __iter__(self):
        return iter(sorted(self._pairs))

    def __contains__(self, pair: object) -> bool:
        return pair in self._pairs

    def add(self, student_id: str, advisor_id: str) -> None:
        if (advisor_id, student_id) in self._pairs:
            raise ValueError(
                f"Ground truth already says {student_id} advises {advisor_id}"
            )
        self._pairs.add((student_id, advisor_id))

    def correct_direction(self, a: str, b: str) -> tuple[str, str] | None:
        """The correct (student, advisor) orientation of {a, b}, if known."""
        if (a, b) in self._pairs:
            return (a, b)
        if (b, a) in self._pairs:
            return (b, a)
        return None

    @classmethod
    def from_names(
        cls, mapping: dict[str, str], matcher: EntityMatcher
    ) -> GroundTruthTable:
        """Resolve a {student name: advisor name} mapping through the matcher.

        Names that do not resolve to a stored person are logged and skipped.
        """
        table = cls()
        for student_name, advisor_name in mapping.items():
            student = matcher.find_by_name(student_name)
            advisor = matcher.find_by_name(advisor_name)
            if student is None or advisor is None:
                logger.warning(
                    "Ground truth entry %r -> %r skipped: %s not found",
                    student_name, advisor_name,
                    student_name if student is None else advisor_name,
                )
                continue
            if student.id == advisor.id:
                logger.warning(
                    "Ground truth entry %r -> %r resolves to one person, skipped",
                    student_name, advisor_name,
                )
                continue
            table.add(student.id, advisor.id)
        logger.info(
            "Ground truth: %d of %d entries resolved", len(table), len(mapping)
        )
        return table

    @classmethod
    def from_file(cls, path: str | Path, matcher: EntityMatcher) -> GroundTruthTable:
        """Load a {student name: advisor name} JSON file."""
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"{path}: expected a JSON object of name -> name")
        return cls.from_names({str(k): str(v) for k, v in data.items()}, matcher)


@dataclass
class RepairReport:
    """Relation repair summary."""

    duplicates_removed: int = 0
    contradictions_resolved: int = 0
    reversed_by_ground_truth: int = 0
    unresolved: list[ContradictionPair] = field(default_factory=list)
    dry_run: bool = False

    @property
    def unresolved_count(self) -> int:
        return len(self.unresolved)

    @property
    def stats(self) -> dict[str, int]:
        return {
            "duplicates_removed": self.duplicates_removed,
            "contradictions_resolved": self.contradictions_resolved,
            "reversed_by_ground_truth": self.reversed_by_ground_truth,
            "unresolved_contradictions": self.unresolved_count,
        }


@dataclass
class MigrationReport:
    """Bulk direction migration summary."""

    provenance: str
    reversed: int = 0
    deleted_redundant: int = 0
    already_normalized: int = 0
    dry_run: bool = False

    @property
    def stats(self) -> dict[str, int]:
        return {
            "reversed": self.reversed,
            "deleted_redundant": self.deleted_redundant,
            "already_normalized": self.already_normalized,
        }


class RelationRepairer:
    """Scan and repair the relation graph.

    Args:
        store: Knowledge store; every mutation runs in its transaction.
    """

    def __init__(self, store: BaseKnowledgeStore) -> None:
        self._store = store
        self._graph = RelationGraphStore(store.relations)

    @property
    def graph(self) -> RelationGraphStore:
        return self._graph

    # ------------------------------------------------------------------
    # Pass 1
    # ------------------------------------------------------------------

    def remove_duplicates(self, dry_run: bool = False) -> int:
        """Delete every edge but the earliest per (source, target, type)."""
        seen: set[tuple[str, str, RelationType]] = set()
        redundant: list[RelationEdge] = []
        # list_all is oldest first, so the first edge of each key is kept
        for edge in self._graph.edges():
            if edge.key in seen:
                redundant.append(edge)
            else:
                seen.add(edge.key)

        if redundant and not dry_run:
            with self._store.transaction():
                for edge in redundant:
                    self._graph.delete(edge.id)
        logger.info(
            "Duplicate edges: %d %s",
            len(redundant), "found" if dry_run else "removed",
        )
        return len(redundant)

    # ------------------------------------------------------------------
    # Pass 2
    # ------------------------------------------------------------------

    def resolve_contradictions(
        self,
        ground_truth: GroundTruthTable,
        dry_run: bool = False,
    ) -> tuple[int, list[ContradictionPair]]:
        """Resolve advisor contradictions from ground truth.

        Returns:
            (number resolved, pairs left in place and flagged).
        """
        resolved = 0
        unresolved: list[ContradictionPair] = []
        for pair in self._graph.find_contradictions():
            direction = ground_truth.correct_direction(pair.person_a, pair.person_b)
            if direction is None:
                logger.warning("%s; flagged for manual review",
                               UnresolvedContradiction(pair.person_a, pair.person_b))
                unresolved.append(pair)
                continue

            student, advisor = direction
            wrong = self._store.relations.find(advisor, student, pair.relation_type)
            if not dry_run:
                with self._store.transaction():
                    for edge in wrong:
                        self._graph.delete(edge.id)
            logger.info(
                "Contradiction %s <-> %s resolved: %s advises %s",
                pair.person_a, pair.person_b, advisor, student,
            )
            resolved += 1

        if unresolved:
            logger.warning("%d contradiction(s) left unresolved", len(unresolved))
        return resolved, unresolved

    def enforce_ground_truth(
        self, ground_truth: GroundTruthTable, dry_run: bool = False
    ) -> int:
        """Reverse advisor edges pointing against a ground truth entry."""
        reversed_count = 0
        for student, advisor in ground_truth:
            if self._graph.exists(student, advisor, RelationType.ADVISOR):
                continue
            wrong = self._store.relations.find(advisor, student, RelationType.ADVISOR)
            if not wrong:
                continue
            if not dry_run:
                with self._store.transaction():
                    outcome = self._graph.reverse(wrong[0].id)
                    for extra in wrong[1:]:
                        self._graph.delete(extra.id)
                logger.info(
                    "Edge %s (%s -> %s) %s per ground truth",
                    wrong[0].id, advisor, student, outcome.value,
                )
            reversed_count += 1
        return reversed_count

    def run(
        self,
        ground_truth: GroundTruthTable | None = None,
        dry_run: bool = False,
    ) -> RepairReport:
        """Run duplicate removal, contradiction resolution and enforcement."""
        ground_truth = ground_truth or GroundTruthTable()
        report = RepairReport(dry_run=dry_run)
        report.duplicates_removed = self.remove_duplicates(dry_run=dry_run)
        report.contradictions_resolved, report.unresolved = (
            self.resolve_contradictions(ground_truth, dry_run=dry_run)
        )
        report.reversed_by_ground_truth = self.enforce_ground_truth(
            ground_truth, dry_run=dry_run
        )
        logger.info(
            "Relation repair: %d duplicates, %d resolved, %d reversed, "
            "%d unresolved contradictions",
            report.duplicates_removed, report.contradictions_resolved,
            report.reversed_by_ground_truth, report.unresolved_count,
        )
        return report

    # ------------------------------------------------------------------
    # Direction migration
    # ------------------------------------------------------------------

    def migrate_direction(
        self, provenance: str, dry_run: bool = False
    ) -> MigrationReport:
        """Reverse every not-yet-normalized edge from an inverted source.

        Reversed edges are marked normalized, so re-running is a no-op.
        An edge whose reversal already exists is deleted instead.
        """
        report = MigrationReport(provenance=provenance, dry_run=dry_run)
        with self._store.transaction():
            for edge in self._graph.edges(provenance=provenance):
                if edge.normalized:
                    report.already_normalized += 1
                    continue
                if dry_run:
                    if self._graph.exists(
                        edge.target_id, edge.source_id, edge.relation_type
                    ):
                        report.deleted_redundant += 1
                    else:
                        report.reversed += 1
                    continue
                outcome = self._graph.reverse(edge.id)
                if outcome is ReverseOutcome.REVERSED:
                    report.reversed += 1
                else:
                    report.deleted_redundant += 1

        logger.info(
            "Direction migration for %s: %d reversed, %d redundant deleted, "
            "%d already normalized",
            provenance, report.reversed, report.deleted_redundant,
            report.already_normalized,
        )
        return report
