# tests/unit/graph/test_unit_relation_store.py — v1
"""Tests for graph/relation_store.py."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from peoplegraph.core.errors import DuplicateEdge, NotFound
from peoplegraph.core.models import RelationEdge, RelationType
from peoplegraph.graph.relation_store import RelationGraphStore, ReverseOutcome

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _edge(src, tgt, minute=0, rtype=RelationType.ADVISOR, **kw) -> RelationEdge:
    return RelationEdge(source_id=src, target_id=tgt, relation_type=rtype,
                        created_at=T0 + timedelta(minutes=minute), **kw)


@pytest.fixture
def graph(store) -> RelationGraphStore:
    return RelationGraphStore(store.relations)


class TestInsert:
    def test_insert_and_exists(self, graph):
        graph.insert(_edge("a", "b"))
        assert graph.exists("a", "b", RelationType.ADVISOR)
        assert not graph.exists("b", "a", RelationType.ADVISOR)

    def test_duplicate_rejected(self, graph):
        first = graph.insert(_edge("a", "b", id="e1"))
        with pytest.raises(DuplicateEdge) as exc_info:
            graph.insert(_edge("a", "b", minute=5))
        assert exc_info.value.existing_id == first.id
        assert exc_info.value.key == ("a", "b", "advisor")

    def test_same_pair_other_type_allowed(self, graph):
        graph.insert(_edge("a", "b"))
        graph.insert(_edge("a", "b", rtype=RelationType.COLLEAGUE))
        assert len(graph.edges()) == 2

    def test_opposite_direction_allowed_at_insert(self, graph):
        graph.insert(_edge("a", "b"))
        graph.insert(_edge("b", "a"))
        assert len(graph.edges()) == 2

    def test_insert_if_absent(self, graph):
        assert graph.insert_if_absent(_edge("a", "b")) is True
        assert graph.insert_if_absent(_edge("a", "b")) is False
        assert len(graph.edges()) == 1


class TestReverse:
    def test_reverse_swaps(self, graph):
        graph.insert(_edge("a", "b", id="e1", normalized=False))
        assert graph.reverse("e1") is ReverseOutcome.REVERSED
        edge = graph.get("e1")
        assert (edge.source_id, edge.target_id) == ("b", "a")
        assert edge.normalized

    def test_reverse_onto_existing_deletes(self, graph):
        graph.insert(_edge("a", "b", id="e1"))
        graph.insert(_edge("b", "a", id="e2"))
        assert graph.reverse("e1") is ReverseOutcome.DELETED_REDUNDANT
        assert graph.get("e1") is None
        assert graph.get("e2") is not None

    def test_reverse_missing(self, graph):
        with pytest.raises(NotFound):
            graph.reverse("nope")


class TestContradictions:
    def test_pair_reported_once_ordered(self, graph):
        graph.insert(_edge("z", "a", minute=1, id="e-za"))
        graph.insert(_edge("a", "z", minute=2, id="e-az"))
        pairs = graph.find_contradictions()
        assert len(pairs) == 1
        assert (pairs[0].person_a, pairs[0].person_b) == ("a", "z")
        assert pairs[0].edge_ab_id == "e-az"
        assert pairs[0].edge_ba_id == "e-za"

    def test_symmetric_types_ignored(self, graph):
        graph.insert(_edge("a", "b", rtype=RelationType.COLLEAGUE))
        graph.insert(_edge("b", "a", rtype=RelationType.COLLEAGUE))
        assert graph.find_contradictions() == []

    def test_oldest_duplicate_referenced(self, store, graph):
        store.relations.add(_edge("a", "b", minute=3, id="late"))
        store.relations.add(_edge("a", "b", minute=1, id="early"))
        store.relations.add(_edge("b", "a", minute=2, id="back"))
        assert graph.find_contradictions()[0].edge_ab_id == "early"


class TestNetworkxView:
    def test_multidigraph(self, graph):
        graph.insert(_edge("a", "b", id="e1", provenance="wikidata"))
        graph.insert(_edge("a", "b", id="e2", rtype=RelationType.COLLEAGUE))
        g = graph.to_networkx()
        assert g.number_of_edges("a", "b") == 2
        assert g.edges["a", "b", "e1"]["provenance"] == "wikidata"
        assert g.edges["a", "b", "e2"]["relation_type"] == "colleague"
