# src/pipeline/relation_import.py — v1
"""External relation import — pull person-to-person relations from the
knowledge source for every enrolled person with an external id.

The related person is resolved through the entity matcher (external id
first, then label). Relations to people not in the store are skipped.
Edges go through the `wikidata` source adapter, so direction is normalized
before insertion and re-runs only hit duplicate no-ops.
"""

from __future__ import annotations

import logging

from peoplegraph.config.settings import Settings
from peoplegraph.core.errors import ExternalServiceFailure, IdentifierConflict
from peoplegraph.core.models import CandidateRecord, Person, new_id
from peoplegraph.external.base_knowledge_source import KnowledgeSource
from peoplegraph.external.retry import Cooldown, RetryConfig, with_retry
from peoplegraph.graph.entity_matcher import EntityMatcher
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


class ExternalRelationImportJob:
    """Import relations for every person carrying an external id."""

    def __init__(
        self,
        store: BaseKnowledgeStore,
        source: KnowledgeSource,
        settings: Settings | None = None,
        source_name: str = "wikidata",
        retry: RetryConfig | None = None,
        cooldown: Cooldown | None = None,
    ) -> None:
        self._store = store
        self._source = source
        self._source_name = source_name
        self._matcher = EntityMatcher(store.people, store.organizations)
        self._ingestor = RelationIngestor(
            RelationGraphStore(store.relations), DEFAULT_ADAPTERS
        )
        if retry is None:
            retry = RetryConfig.from_settings(settings) if settings else RetryConfig()
        self._retry = retry
        if cooldown is None:
            cooldown = Cooldown(settings.external_cooldown_s if settings else 3.0)
        self._cooldown = cooldown

    async def run(self, dry_run: bool = False) -> JobReport:
        set_job_context("import-relations", new_id()[:8])
        people = [p for p in self._store.people.list_all() if p.external_id]
        report = JobReport(job="import-relations", total=len(people), dry_run=dry_run)
        ingest = IngestReport()
        unresolved = 0

        for person in people:
            set_item_context(person.name)
            try:
                raws, missing = await self._collect(person)
            except ExternalServiceFailure as e:
                logger.warning("Skipping %r: %s", person.name, e)
                report.skip(person.name, str(e))
                continue
            finally:
                set_item_context(None)

            unresolved += missing
            if raws and not dry_run:
                with self._store.transaction():
                    self._ingestor.ingest(self._source_name, raws, report=ingest)
            report.processed += 1

        report.stats = {**ingest.stats, "unresolved_people": unresolved}
        for raw, reason in ingest.rejected:
            report.flag(f"{raw.subject_id}->{raw.object_id}", reason)
        logger.info(report.summary().splitlines()[0])
        return report

    async def _collect(self, person: Person) -> tuple[list[RawRelation], int]:
        """Raw relations of one person whose counterpart is enrolled."""
        await self._cooldown.wait()
        relations = await with_retry(
            self._source.get_relations, person.external_id,
            operation=f"get_relations {person.external_id}", config=self._retry,
        )

        raws: list[RawRelation] = []
        missing = 0
        for rel in relations:
            candidate = CandidateRecord(
                name=rel.related_label or rel.related_external_id,
                external_id=rel.related_external_id,
            )
            try:
                result = self._matcher.match(candidate)
            except IdentifierConflict as e:
                logger.warning("Related person not resolved: %s", e)
                missing += 1
                continue
            if result.is_new or result.entity_id is None:
                logger.debug(
                    "%s of %r (%s) not enrolled",
                    rel.relation_type, person.name, rel.related_external_id,
                )
                missing += 1
                continue
            if result.entity_id == person.id:
                continue
            raws.append(
                RawRelation(
                    subject_id=person.id,
                    object_id=result.entity_id,
                    relation_type=rel.relation_type,
                    description=rel.description,
                )
            )
        return raws, missing
