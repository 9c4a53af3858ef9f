# src/metrics/topic_ranker.py — v1
"""Per-topic ranks from influence scores.

For each topic tag: sort carriers by score descending, ties by id, and
assign 1-based contiguous ranks.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass


@dataclass(frozen=True)
class ScoredEntity:
    """Minimal view needed for ranking."""

    id: str
    score: float
    topics: tuple[str, ...]


def compute_topic_ranks(
    scored: Iterable[ScoredEntity],
) -> dict[str, dict[str, int]]:
    """Return {entity id: {topic: rank}}.

    Only topics an entity carries appear in its mapping; entities without
    topics map to an empty dict.
    """
    entities = list(scored)
    by_topic: dict[str, list[ScoredEntity]] = defaultdict(list)
    ranks: dict[str, dict[str, int]] = {e.id: {} for e in entities}

    for entity in entities:
        for topic in dict.fromkeys(t.strip() for t in entity.topics):
            if topic:
                by_topic[topic].append(entity)

    for topic, members in by_topic.items():
        members.sort(key=lambda e: (-e.score, e.id))
        for position, entity in enumerate(members, start=1):
            ranks[entity.id][topic] = position
    return ranks
