# tests/unit/metrics/test_unit_topic_ranker.py — v1
"""Tests for metrics/topic_ranker.py."""

from __future__ import annotations

from peoplegraph.metrics.topic_ranker import ScoredEntity, compute_topic_ranks


class TestTopicRanks:
    def test_descending_by_score(self):
        ranks = compute_topic_ranks([
            ScoredEntity("a", 10.0, ("nlp",)),
            ScoredEntity("b", 30.0, ("nlp",)),
            ScoredEntity("c", 20.0, ("nlp",)),
        ])
        assert {k: v["nlp"] for k, v in ranks.items()} == {"b": 1, "c": 2, "a": 3}

    def test_ties_broken_by_id(self):
        ranks = compute_topic_ranks([
            ScoredEntity("z", 5.0, ("cv",)),
            ScoredEntity("m", 5.0, ("cv",)),
        ])
        assert ranks["m"]["cv"] == 1
        assert ranks["z"]["cv"] == 2

    def test_ranks_are_contiguous_per_topic(self):
        ranks = compute_topic_ranks([
            ScoredEntity("a", 9.0, ("cv", "nlp")),
            ScoredEntity("b", 8.0, ("nlp",)),
            ScoredEntity("c", 7.0, ("cv",)),
        ])
        assert ranks == {
            "a": {"cv": 1, "nlp": 1},
            "b": {"nlp": 2},
            "c": {"cv": 2},
        }

    def test_no_topics(self):
        assert compute_topic_ranks([ScoredEntity("a", 1.0, ())]) == {"a": {}}

    def test_repeated_topic_counted_once(self):
        ranks = compute_topic_ranks([
            ScoredEntity("a", 1.0, ("rl", " rl", "")),
            ScoredEntity("b", 2.0, ("rl",)),
        ])
        assert ranks == {"a": {"rl": 2}, "b": {"rl": 1}}
