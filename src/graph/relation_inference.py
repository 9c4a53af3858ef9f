# src/graph/relation_inference.py — v1
"""Relation inference — propose relations between people who shared an
organization during overlapping periods, and let an external classifier
decide.

Candidate generation is pure (bipartite person/organization graph). The
classifier is an external collaborator called one pair at a time behind a
fixed cool-down; verdicts below the confidence floor are discarded.
"""

from __future__ import annotations

import itertools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date

import networkx as nx
from pydantic import BaseModel, Field

from peoplegraph.config.settings import Settings
from peoplegraph.core.errors import ExternalServiceFailure
from peoplegraph.core.models import AffiliationFact, Organization, Person, new_id
from peoplegraph.external.retry import Cooldown, RetryConfig, with_retry
from peoplegraph.graph.relation_normalizer import (
    DEFAULT_ADAPTERS,
    IngestReport,
    RawRelation,
    RelationIngestor,
)
from peoplegraph.graph.relation_store import RelationGraphStore
from peoplegraph.logging.context import set_item_context, set_job_context
from peoplegraph.pipeline.models import JobReport
from peoplegraph.storage.base_repository import BaseKnowledgeStore

logger = logging.getLogger(__name__)

INFERENCE_SOURCE = "ai-inference"


@dataclass
class RelationCandidate:
    """Two people who overlapped at one or more organizations."""

    person_a: str
    person_b: str
    shared_organizations: list[str] = field(default_factory=list)


class RelationVerdict(BaseModel):
    """Classifier answer, read as "person_b is the relation_type of person_a".

    relation_type may be `advisee`, or None when no relation holds.
    """

    relation_type: str | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    description: str = ""


class RelationClassifier(ABC):
    """External collaborator deciding the relation between two people."""

    @abstractmethod
    async def classify(
        self, person_a: Person, person_b: Person, shared_organizations: list[str]
    ) -> RelationVerdict:
        """Classify the relation of person_b to person_a."""


def _windows_overlap(a: AffiliationFact, b: AffiliationFact) -> bool:
    # Open start = since forever, open end = ongoing
    a_start, b_start = a.start_date or date.min, b.start_date or date.min
    a_end, b_end = a.end_date or date.max, b.end_date or date.max
    return a_start <= b_end and b_start <= a_end


def find_relation_candidates(
    people: list[Person],
    organizations: list[Organization],
    affiliations: list[AffiliationFact],
) -> list[RelationCandidate]:
    """Pairs of people sharing an organization with overlapping windows.

    Pairs are ordered (person_a < person_b) and sorted for determinism.
    """
    person_ids = {p.id for p in people}
    org_names = {o.id: o.name for o in organizations}

    graph = nx.Graph()
    for fact in affiliations:
        if fact.person_id not in person_ids or fact.organization_id not in org_names:
            continue
        p_node, o_node = ("person", fact.person_id), ("org", fact.organization_id)
        graph.add_node(p_node, bipartite=0)
        graph.add_node(o_node, bipartite=1)
        if graph.has_edge(p_node, o_node):
            graph.edges[p_node, o_node]["facts"].append(fact)
        else:
            graph.add_edge(p_node, o_node, facts=[fact])

    shared: dict[tuple[str, str], list[str]] = {}
    org_nodes = sorted(n for n in graph.nodes if n[0] == "org")
    for o_node in org_nodes:
        members = sorted(graph.neighbors(o_node))
        for (_, a), (_, b) in itertools.combinations(members, 2):
            facts_a = graph.edges[("person", a), o_node]["facts"]
            facts_b = graph.edges[("person", b), o_node]["facts"]
            if any(_windows_overlap(fa, fb) for fa in facts_a for fb in facts_b):
                shared.setdefault((a, b), []).append(org_names[o_node[1]])

    return [
        RelationCandidate(person_a=a, person_b=b, shared_organizations=sorted(orgs))
        for (a, b), orgs in sorted(shared.items())
    ]


class RelationInferenceJob:
    """Classify candidate pairs and ingest accepted relations.

    Args:
        store: Knowledge store.
        classifier: External relation classifier.
        settings: Confidence floor, pacing and retry settings.
    """

    def __init__(
        self,
        store: BaseKnowledgeStore,
        classifier: RelationClassifier,
        settings: Settings | None = None,
        retry: RetryConfig | None = None,
        cooldown: Cooldown | None = None,
    ) -> None:
        self._store = store
        self._classifier = classifier
        self._graph = RelationGraphStore(store.relations)
        self._ingestor = RelationIngestor(self._graph, DEFAULT_ADAPTERS)
        self._min_confidence = settings.inference_min_confidence if settings else 0.7
        if retry is None:
            retry = RetryConfig.from_settings(settings) if settings else RetryConfig()
        self._retry = retry
        if cooldown is None:
            cooldown = Cooldown(settings.external_cooldown_s if settings else 3.0)
        self._cooldown = cooldown

    def _related(self, a: str, b: str) -> bool:
        return bool(
            self._store.relations.find(source_id=a, target_id=b)
            or self._store.relations.find(source_id=b, target_id=a)
        )

    async def run(self, dry_run: bool = False) -> JobReport:
        set_job_context("infer-relations", new_id()[:8])
        people = {p.id: p for p in self._store.people.list_all()}
        candidates = find_relation_candidates(
            list(people.values()),
            self._store.organizations.list_all(),
            self._store.organizations.list_affiliations(),
        )
        report = JobReport(job="infer-relations", total=len(candidates), dry_run=dry_run)
        ingest = IngestReport()
        counts = {"already_related": 0, "no_relation": 0, "low_confidence": 0, "accepted": 0}

        for cand in candidates:
            a, b = people[cand.person_a], people[cand.person_b]
            key = f"{a.name} / {b.name}"
            if self._related(a.id, b.id):
                counts["already_related"] += 1
                report.processed += 1
                continue

            set_item_context(key)
            try:
                await self._cooldown.wait()
                verdict = await with_retry(
                    self._classifier.classify, a, b, cand.shared_organizations,
                    operation=f"classify {key}", config=self._retry,
                )
            except ExternalServiceFailure as e:
                logger.warning("Skipping %s: %s", key, e)
                report.skip(key, str(e))
                continue
            finally:
                set_item_context(None)

            report.processed += 1
            if not verdict.relation_type:
                counts["no_relation"] += 1
                continue
            if verdict.confidence < self._min_confidence:
                logger.info(
                    "Discarding %s %s (confidence %.2f < %.2f)",
                    key, verdict.relation_type, verdict.confidence, self._min_confidence,
                )
                counts["low_confidence"] += 1
                continue

            counts["accepted"] += 1
            if dry_run:
                continue
            raw = RawRelation(
                subject_id=a.id,
                object_id=b.id,
                relation_type=verdict.relation_type,
                description=verdict.description,
                confidence=verdict.confidence,
            )
            with self._store.transaction():
                self._ingestor.ingest(INFERENCE_SOURCE, [raw], report=ingest)

        report.stats = {**counts, **ingest.stats}
        for raw, reason in ingest.rejected:
            report.flag(f"{raw.subject_id}->{raw.object_id}", reason)
        logger.info(report.summary().splitlines()[0])
        return report
