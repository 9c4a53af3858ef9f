# src/metrics/aggregator.py — v1
"""Metrics aggregator — read signals from the store, write scores and ranks.

Influence scores are stored rounded to 2 decimals; topic ranks are derived
from the stored (rounded) scores so the two never disagree.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from peoplegraph.core.models import Person
from peoplegraph.metrics.influence import (
    InfluenceBreakdown,
    InfluenceConfig,
    InfluenceSignals,
    compute_influence,
)
from peoplegraph.metrics.topic_ranker import ScoredEntity, compute_topic_ranks
from peoplegraph.storage.base_repository import BaseKnowledgeStore

logger = logging.getLogger(__name__)

POPULARITY_SOURCE_TYPE = "github"
POPULARITY_METADATA_KEY = "stars"


@dataclass
class MetricsReport:
    """Scores and ranks computed in one run."""

    scores: dict[str, float] = field(default_factory=dict)
    ranks: dict[str, dict[str, int]] = field(default_factory=dict)
    stats: dict[str, int] = field(default_factory=dict)
    dry_run: bool = False


class MetricsAggregator:
    """Compute influence scores and topic ranks for every person.

    Args:
        store: Knowledge store.
        config: Influence formula parameters.
    """

    def __init__(
        self,
        store: BaseKnowledgeStore,
        config: InfluenceConfig | None = None,
    ) -> None:
        self._store = store
        self._config = config or InfluenceConfig()

    def collect_signals(self, person: Person) -> InfluenceSignals:
        items = self._store.contents.list_for_person(person.id)
        stars = 0
        for item in items:
            if item.source_type != POPULARITY_SOURCE_TYPE:
                continue
            try:
                stars += max(0, int(item.metadata.get(POPULARITY_METADATA_KEY) or 0))
            except (TypeError, ValueError):
                logger.debug("Ignoring non-numeric stars on content %s", item.id)
        return InfluenceSignals(
            content_count=len(items),
            card_count=person.card_count,
            popularity_count=stars,
            citation_count=person.citation_count,
            h_index=person.h_index,
            qualitative_score=person.qualitative_score,
        )

    def compute_influence(self, person: Person) -> InfluenceBreakdown:
        return compute_influence(self.collect_signals(person), self._config)

    def compute_topic_ranks(
        self,
        people: list[Person],
        scores: dict[str, float] | None = None,
    ) -> dict[str, dict[str, int]]:
        """Ranks per topic; uses stored scores unless `scores` overrides them."""
        scores = scores or {}
        return compute_topic_ranks(
            ScoredEntity(
                id=p.id,
                score=scores.get(p.id, p.influence_score),
                topics=tuple(p.topics),
            )
            for p in people
        )

    def run(self, dry_run: bool = False) -> MetricsReport:
        """Recompute every score and rank, written in a single transaction."""
        people = self._store.people.list_all()
        report = MetricsReport(dry_run=dry_run)

        for person in people:
            report.scores[person.id] = round(self.compute_influence(person).score, 2)
        report.ranks = self.compute_topic_ranks(people, report.scores)

        changed = 0
        if not dry_run:
            with self._store.transaction():
                for person in people:
                    score = report.scores[person.id]
                    ranks = report.ranks[person.id]
                    if person.influence_score == score and person.topic_ranks == ranks:
                        continue
                    self._store.people.update(
                        person.model_copy(
                            update={"influence_score": score, "topic_ranks": ranks}
                        )
                    )
                    changed += 1

        report.stats = {
            "people": len(people),
            "updated": changed,
            "topics": len({t for r in report.ranks.values() for t in r}),
        }
        logger.info(
            "Metrics: %d people scored, %d updated, %d topics ranked",
            len(people), changed, report.stats["topics"],
        )
        return report
