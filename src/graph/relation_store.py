# src/graph/relation_store.py — v1
"""Relation graph store — directed typed edges between persons.

Canonical convention: edge (A, B, t) reads "B is the t of A".
`insert` rejects exact duplicates only. Antisymmetric violations are left to
the repairer so a batch import never pays a pairwise check per insert.
"""

from __future__ import annotations

import logging
from enum import Enum

import networkx as nx

from peoplegraph.core.errors import DuplicateEdge, NotFound
from peoplegraph.core.models import (
    ANTISYMMETRIC_TYPES,
    ContradictionPair,
    RelationEdge,
    RelationType,
)
from peoplegraph.storage.base_repository import RelationRepository

logger = logging.getLogger(__name__)


class ReverseOutcome(str, Enum):
    REVERSED = "reversed"
    DELETED_REDUNDANT = "deleted_redundant"


class RelationGraphStore:
    """Edge operations over a RelationRepository.

    Args:
        relations: Relation repository of the knowledge store.
    """

    def __init__(self, relations: RelationRepository) -> None:
        self._relations = relations

    def insert(self, edge: RelationEdge) -> RelationEdge:
        """Store a new edge.

        Raises:
            DuplicateEdge: An edge with the same (source, target, type) exists.
        """
        existing = self._relations.find(
            edge.source_id, edge.target_id, edge.relation_type
        )
        if existing:
            raise DuplicateEdge(
                existing[0].id,
                (edge.source_id, edge.target_id, edge.relation_type.value),
            )
        return self._relations.add(edge)

    def insert_if_absent(self, edge: RelationEdge) -> bool:
        """Insert; a duplicate is a successful no-op. True if stored."""
        try:
            self.insert(edge)
        except DuplicateEdge as e:
            logger.debug("Skipping duplicate edge %s", e.key)
            return False
        return True

    def exists(
        self, source_id: str, target_id: str, relation_type: RelationType
    ) -> bool:
        return bool(self._relations.find(source_id, target_id, relation_type))

    def get(self, edge_id: str) -> RelationEdge | None:
        return self._relations.get(edge_id)

    def delete(self, edge_id: str) -> bool:
        return self._relations.delete(edge_id)

    def reverse(self, edge_id: str) -> ReverseOutcome:
        """Swap source and target of an edge.

        If the reversed edge already exists, the edge is redundant and is
        deleted instead. The surviving edge is marked normalized.

        Raises:
            NotFound: No edge with this id.
        """
        edge = self._relations.get(edge_id)
        if edge is None:
            raise NotFound("edge", edge_id)

        if self.exists(edge.target_id, edge.source_id, edge.relation_type):
            self._relations.delete(edge.id)
            return ReverseOutcome.DELETED_REDUNDANT

        self._relations.update(
            edge.model_copy(
                update={
                    "source_id": edge.target_id,
                    "target_id": edge.source_id,
                    "normalized": True,
                }
            )
        )
        return ReverseOutcome.REVERSED

    def edges(self, provenance: str | None = None) -> list[RelationEdge]:
        """All edges, oldest first."""
        return self._relations.list_all(provenance=provenance)

    def find_contradictions(self) -> list[ContradictionPair]:
        """Unordered pairs holding antisymmetric edges in both directions.

        Each pair is reported once with person_a < person_b. When a direction
        holds several duplicate edges, the oldest one is referenced.
        """
        first: dict[tuple[str, str, RelationType], RelationEdge] = {}
        for edge in self._relations.list_all():
            if edge.relation_type in ANTISYMMETRIC_TYPES:
                first.setdefault(edge.key, edge)

        pairs: list[ContradictionPair] = []
        for (src, tgt, rtype), edge in first.items():
            if src > tgt:
                continue
            opposite = first.get((tgt, src, rtype))
            if opposite is None:
                continue
            pairs.append(
                ContradictionPair(
                    person_a=src,
                    person_b=tgt,
                    edge_ab_id=edge.id,
                    edge_ba_id=opposite.id,
                    relation_type=rtype,
                )
            )
        pairs.sort(key=lambda p: (p.person_a, p.person_b, p.relation_type.value))
        return pairs

    def to_networkx(self) -> nx.MultiDiGraph:
        """Graph view: nodes are person ids, keyed edges carry the edge data."""
        graph = nx.MultiDiGraph()
        for edge in self._relations.list_all():
            graph.add_edge(
                edge.source_id,
                edge.target_id,
                key=edge.id,
                relation_type=edge.relation_type.value,
                provenance=edge.provenance,
                confidence=edge.confidence,
            )
        return graph
