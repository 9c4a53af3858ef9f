# tests/unit/metrics/test_unit_aggregator.py — v1
"""Tests for metrics/aggregator.py."""

from __future__ import annotations

import pytest

from peoplegraph.core.models import ContentItem, Person
from peoplegraph.metrics.aggregator import MetricsAggregator
from peoplegraph.metrics.influence import InfluenceConfig


@pytest.fixture
def scored_store(store):
    store.people.add(Person(id="a", name="Andrej Karpathy", topics=["deep learning"],
                            qualitative_score=9, citation_count=99))
    store.people.add(Person(id="b", name="Chris Olah", topics=["deep learning", "interpretability"],
                            qualitative_score=7))
    store.people.add(Person(id="c", name="No Topics"))
    store.contents.add(ContentItem(id="r1", person_id="a", source_type="github",
                                   metadata={"stars": 999}))
    store.contents.add(ContentItem(id="r2", person_id="a", source_type="github",
                                   metadata={"stars": "n/a"}))
    store.contents.add(ContentItem(id="v1", person_id="b", source_type="youtube",
                                   metadata={"stars": 10**6}))
    return store


class TestSignals:
    def test_stars_only_from_repositories(self, scored_store):
        agg = MetricsAggregator(scored_store)
        a = agg.collect_signals(scored_store.people.get("a"))
        b = agg.collect_signals(scored_store.people.get("b"))
        assert (a.content_count, a.popularity_count, a.citation_count) == (2, 999, 99)
        assert (b.content_count, b.popularity_count) == (1, 0)


class TestRun:
    def test_scores_rounded_and_stored(self, scored_store):
        report = MetricsAggregator(scored_store).run()
        stored = scored_store.people.get("a")
        assert stored.influence_score == report.scores["a"]
        assert report.scores["a"] == round(report.scores["a"], 2)
        assert report.scores["c"] == 0.0

    def test_topic_ranks_written(self, scored_store):
        MetricsAggregator(scored_store).run()
        assert scored_store.people.get("a").topic_ranks == {"deep learning": 1}
        assert scored_store.people.get("b").topic_ranks == {
            "deep learning": 2, "interpretability": 1,
        }
        assert scored_store.people.get("c").topic_ranks == {}

    def test_second_run_updates_nothing(self, scored_store):
        MetricsAggregator(scored_store).run()
        report = MetricsAggregator(scored_store).run()
        assert report.stats == {"people": 3, "updated": 0, "topics": 2}

    def test_dry_run(self, scored_store):
        report = MetricsAggregator(scored_store).run(dry_run=True)
        assert report.scores["a"] > 0
        assert scored_store.people.get("a").influence_score == 0.0

    def test_custom_config(self, scored_store):
        cfg = InfluenceConfig(w_content=0, w_popularity=0, w_academic=0, w_qualitative=1)
        report = MetricsAggregator(scored_store, cfg).run()
        assert report.scores == {"a": 90.0, "b": 70.0, "c": 0.0}

    def test_ranks_follow_stored_scores(self, scored_store):
        agg = MetricsAggregator(scored_store)
        people = scored_store.people.list_all()
        ranks = agg.compute_topic_ranks(people, {"a": 1.0, "b": 2.0})
        assert ranks["b"]["deep learning"] == 1
