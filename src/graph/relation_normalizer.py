# src/graph/relation_normalizer.py — v2
"""Direction normalization at the ingestion boundary.

Every relation source declares its native direction convention. Raw
relations are rewritten to the canonical convention ("related is the type of
subject") before they reach the graph store, so stored edges never need a
post-hoc direction fix.

Also maps the `advisee` pseudo-type to a flipped `advisor` edge.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, Field

from peoplegraph.core.models import RelationEdge, RelationType
from peoplegraph.graph.relation_store import RelationGraphStore

logger = logging.getLogger(__name__)

# Pseudo-types accepted from sources, mapped to (canonical type, flip)
_TYPE_ALIASES: dict[str, tuple[RelationType, bool]] = {
    "advisee": (RelationType.ADVISOR, True),
    "student": (RelationType.ADVISOR, True),
    "co-founder": (RelationType.COFOUNDER, False),
    "co_founder": (RelationType.COFOUNDER, False),
}


class DirectionConvention(str, Enum):
    CANONICAL = "canonical"  # (s, r, t): r is the t of s
    INVERTED = "inverted"  # (s, r, t): s is the t of r


class RawRelation(BaseModel):
    """A relation as emitted by a source, before normalization."""

    subject_id: str
    object_id: str
    relation_type: str
    description: str = ""
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)


def resolve_relation_type(raw_type: str) -> tuple[RelationType, bool]:
    """Map a source type string to (canonical type, needs flip).

    Raises:
        ValueError: Unknown relation type.
    """
    key = raw_type.strip().lower()
    if key in _TYPE_ALIASES:
        return _TYPE_ALIASES[key]
    try:
        return RelationType(key), False
    except ValueError:
        raise ValueError(f"Unknown relation type: {raw_type!r}") from None


@dataclass(frozen=True)
class RelationSourceAdapter:
    """A relation source and its native direction convention."""

    name: str
    convention: DirectionConvention = DirectionConvention.CANONICAL

    def normalize(self, raw: RawRelation) -> RelationEdge:
        """Rewrite a raw relation into a canonical edge."""
        rtype, flip = resolve_relation_type(raw.relation_type)
        if self.convention is DirectionConvention.INVERTED:
            flip = not flip
        source, target = raw.subject_id, raw.object_id
        if flip:
            source, target = target, source
        return RelationEdge(
            source_id=source,
            target_id=target,
            relation_type=rtype,
            description=raw.description,
            provenance=self.name,
            confidence=raw.confidence,
            normalized=True,
        )


@dataclass
class IngestReport:
    inserted: int = 0
    duplicates: int = 0
    rejected: list[tuple[RawRelation, str]] = field(default_factory=list)

    @property
    def stats(self) -> dict[str, int]:
        return {
            "inserted": self.inserted,
            "duplicates": self.duplicates,
            "rejected": len(self.rejected),
        }


class RelationIngestor:
    """Insert raw relations through their source adapter.

    Args:
        graph_store: Target relation graph store.
        adapters: Known sources, looked up by name.
    """

    def __init__(
        self,
        graph_store: RelationGraphStore,
        adapters: list[RelationSourceAdapter],
    ) -> None:
        self._graph = graph_store
        self._adapters = {a.name: a for a in adapters}

    def adapter(self, name: str) -> RelationSourceAdapter:
        try:
            return self._adapters[name]
        except KeyError:
            raise ValueError(f"No relation source adapter named {name!r}") from None

    def ingest(
        self,
        source: str,
        relations: list[RawRelation],
        report: IngestReport | None = None,
    ) -> IngestReport:
        """Normalize and insert relations from one source.

        Duplicates count as no-op successes; malformed relations (unknown
        type, self-loop) are rejected and reported.
        """
        adapter = self.adapter(source)
        report = report or IngestReport()
        for raw in relations:
            try:
                edge = adapter.normalize(raw)
            except ValueError as e:
                logger.warning("Rejected relation from %s: %s", source, e)
                report.rejected.append((raw, str(e)))
                continue
            if self._graph.insert_if_absent(edge):
                report.inserted += 1
            else:
                report.duplicates += 1
        logger.info(
            "Ingested %d relation(s) from %s: %d new, %d duplicate, %d rejected",
            len(relations), source,
            report.inserted, report.duplicates, len(report.rejected),
        )
        return report


# Sources known to the engine
WIKIDATA_SOURCE = RelationSourceAdapter("wikidata", DirectionConvention.CANONICAL)
AI_INFERENCE_SOURCE = RelationSourceAdapter("ai-inference", DirectionConvention.CANONICAL)
MANUAL_SOURCE = RelationSourceAdapter("manual", DirectionConvention.CANONICAL)

DEFAULT_ADAPTERS: list[RelationSourceAdapter] = [
    WIKIDATA_SOURCE,
    AI_INFERENCE_SOURCE,
    MANUAL_SOURCE,
]
