# src/pipeline/person_enrollment.py — v2
"""Person enrollment — resolve names against the knowledge source and create
canonical Person records with their employer organizations.

Per requested name:
  1. Pre-match by name: already known -> nothing to do.
  2. Search the knowledge source: no hit -> NotFound, item skipped.
  3. Match on the external id: already known -> nothing to do;
     IdentifierConflict -> item flagged for manual resolution.
  4. Fetch details, translate label/description/employers in one batch.
     A translator failure keeps the source text.
  5. Create the Person (source label kept as alias), resolve or create each
     employer Organization and its AffiliationFact, in one transaction.

One item at a time, fixed cool-down between items, bounded retries on every
outbound call. Re-running with the same names is a no-op.
"""

from __future__ import annotations

import logging

from peoplegraph.config.settings import Settings
from peoplegraph.core.errors import (
    ExternalServiceFailure,
    IdentifierConflict,
    NotFound,
)
from peoplegraph.core.models import (
    AffiliationFact,
    CandidateRecord,
    Organization,
    Person,
    new_id,
)
from peoplegraph.external.base_knowledge_source import (
    ExternalEntity,
    ExternalOrganization,
    KnowledgeSource,
    PassthroughTranslator,
    Translator,
)
from peoplegraph.external.retry import Cooldown, RetryConfig, with_retry
from peoplegraph.graph.entity_matcher import EntityMatcher
from peoplegraph.logging.context import set_item_context, set_job_context
from peoplegraph.pipeline.models import JobReport
from peoplegraph.storage.base_repository import BaseKnowledgeStore

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 5


class PersonEnrollmentJob:
    """Enroll people by name.

    Args:
        store: Knowledge store.
        source: External knowledge source.
        translator: Translation collaborator (passthrough if omitted).
        settings: Pacing and retry settings.
    """

    def __init__(
        self,
        store: BaseKnowledgeStore,
        source: KnowledgeSource,
        translator: Translator | None = None,
        settings: Settings | None = None,
        retry: RetryConfig | None = None,
        cooldown: Cooldown | None = None,
    ) -> None:
        self._store = store
        self._source = source
        self._translator = translator or PassthroughTranslator()
        self._matcher = EntityMatcher(store.people, store.organizations)
        if retry is None:
            retry = RetryConfig.from_settings(settings) if settings else RetryConfig()
        self._retry = retry
        if cooldown is None:
            cooldown = Cooldown(settings.external_cooldown_s if settings else 3.0)
        self._cooldown = cooldown

    async def run(self, names: list[str], dry_run: bool = False) -> JobReport:
        """Enroll every name; one bad item never aborts the batch."""
        set_job_context("enroll", new_id()[:8])
        report = JobReport(job="enroll", total=len(names), dry_run=dry_run)
        counts = {"created": 0, "already_present": 0, "organizations_created": 0}

        for name in names:
            set_item_context(name)
            try:
                outcome = await self.enroll(name, dry_run=dry_run, counts=counts)
            except IdentifierConflict as e:
                logger.warning("Identifier conflict, left for manual resolution: %s", e)
                report.flag(name, str(e))
                continue
            except (NotFound, ExternalServiceFailure, ValueError) as e:
                logger.warning("Skipping %r: %s", name, e)
                report.skip(name, str(e))
                continue
            finally:
                set_item_context(None)
            counts[outcome] += 1
            report.processed += 1

        report.stats = counts
        logger.info(report.summary().splitlines()[0])
        return report

    async def enroll(
        self,
        name: str,
        dry_run: bool = False,
        counts: dict[str, int] | None = None,
    ) -> str:
        """Enroll one name. Returns "created" or "already_present".

        Raises:
            NotFound: The knowledge source has no entity for this name.
            IdentifierConflict: The resolved external id belongs to another name.
            ExternalServiceFailure: An outbound call failed after retries.
        """
        counts = counts if counts is not None else {}
        name = name.strip()
        if not name:
            raise ValueError("empty name")

        if not self._matcher.match_name(name).is_new:
            logger.info("%r already enrolled", name)
            return "already_present"

        await self._cooldown.wait()
        hits = await with_retry(
            self._source.search, name, SEARCH_LIMIT,
            operation=f"search {name!r}", config=self._retry,
        )
        if not hits:
            raise NotFound("knowledge source entity", name)
        hit = hits[0]

        candidate = CandidateRecord(
            name=hit.label, aliases=[name], external_id=hit.external_id
        )
        if not self._matcher.match(candidate).is_new:
            logger.info("%r resolves to an enrolled person (%s)", name, hit.external_id)
            return "already_present"

        entity = await with_retry(
            self._source.get_entity, hit.external_id,
            operation=f"get_entity {hit.external_id}", config=self._retry,
        )
        if entity is None:
            raise NotFound("knowledge source entity", hit.external_id)

        texts = [entity.label, entity.description, *(o.label for o in entity.organizations)]
        try:
            translated = await with_retry(
                self._translator.translate_batch, texts,
                operation=f"translate {entity.external_id}", config=self._retry,
            )
        except ExternalServiceFailure as e:
            logger.warning("Translation unavailable, keeping source text: %s", e)
            translated = texts
        if len(translated) != len(texts):
            raise ValueError(
                f"translator returned {len(translated)} texts for {len(texts)}"
            )

        person = self._build_person(entity, requested=name, translated=translated)
        if dry_run:
            logger.info("Would create %r (%s)", person.name, entity.external_id)
            return "created"

        with self._store.transaction():
            self._store.people.add(person)
            for org, localized in zip(entity.organizations, translated[2:]):
                org_id, created = self._resolve_organization(org, localized)
                if org_id is None:
                    continue
                if created:
                    counts["organizations_created"] = counts.get("organizations_created", 0) + 1
                self._store.organizations.add_affiliation(
                    AffiliationFact(person_id=person.id, organization_id=org_id, role=org.role)
                )
        logger.info("Created %r (%s) as %s", person.name, entity.external_id, person.id)
        return "created"

    def _build_person(
        self, entity: ExternalEntity, requested: str, translated: list[str]
    ) -> Person:
        label, description = translated[0].strip() or entity.label, translated[1]
        aliases = [*entity.aliases, entity.label, requested]
        return Person(
            name=label,
            name_localized=label if label != entity.label else None,
            aliases=aliases,
            external_id=entity.external_id,
            description=description,
            occupations=entity.occupations,
            organizations=[t for t in translated[2:] if t.strip()],
            official_links=entity.official_links,
        )

    def _resolve_organization(
        self, org: ExternalOrganization, localized: str
    ) -> tuple[str | None, bool]:
        """Return (organization id, created?) for an employer."""
        aliases = [localized] if localized and localized != org.label else []
        candidate = CandidateRecord(name=org.label, aliases=aliases, external_id=org.external_id)
        try:
            result = self._matcher.match(candidate, kind="organization")
        except IdentifierConflict as e:
            logger.warning("Employer %r not linked: %s", org.label, e)
            return None, False
        if not result.is_new:
            return result.entity_id, False

        created = Organization(
            name=org.label,
            name_localized=aliases[0] if aliases else None,
            external_id=org.external_id,
        )
        self._store.organizations.add(created)
        return created.id, True
