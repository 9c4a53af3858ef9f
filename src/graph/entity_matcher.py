# src/graph/entity_matcher.py — v1
"""Entity matcher — resolve an external candidate record to a canonical entity.

Single authoritative definition of "what counts as a match". Rules, in order:
  1. External identifier carried by an existing entity -> that entity.
     A name disagreement on the same identifier raises IdentifierConflict.
  2. Case-insensitive exact match of any candidate name against canonical
     names and aliases.
  3. Token partial match: identical trailing token plus one other shared
     token. Only a unique hit is accepted.
  4. Otherwise -> create new.

Person and organization namespaces never mix. Read-only over the store.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal, Union

from peoplegraph.core.errors import AmbiguousMatch, IdentifierConflict
from peoplegraph.core.models import CandidateRecord, MatchResult, Organization, Person
from peoplegraph.core.names import normalize_name, tokens_overlap
from peoplegraph.storage.base_repository import EntityRepository, OrganizationRepository

logger = logging.getLogger(__name__)

EntityKind = Literal["person", "organization"]
Entity = Union[Person, Organization]


@dataclass
class _Hit:
    entity: Entity
    via_canonical: bool


class EntityMatcher:
    """Resolve candidates against the person or organization namespace.

    Args:
        people: Person repository.
        organizations: Organization repository.
    """

    def __init__(
        self,
        people: EntityRepository,
        organizations: OrganizationRepository,
    ) -> None:
        self._people = people
        self._organizations = organizations

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def match(
        self, candidate: CandidateRecord, kind: EntityKind = "person"
    ) -> MatchResult:
        """Return the canonical entity id for a candidate, or create-new.

        Raises:
            IdentifierConflict: The candidate's external id is attached to an
                entity whose names do not include the candidate's name.
        """
        entities = self._entities(kind)

        # Rule 1: external identifier
        if candidate.external_id:
            owner = self._by_external_id(kind, candidate.external_id, entities)
            if owner is not None:
                if not _shares_a_name(owner, candidate):
                    raise IdentifierConflict(
                        external_id=candidate.external_id,
                        existing_id=owner.id,
                        existing_name=owner.name,
                        candidate_name=candidate.name,
                    )
                return MatchResult(
                    outcome="existing", entity_id=owner.id, rule="external_id"
                )

        eligible = [
            e for e in entities
            if not _identifiers_disagree(e.external_id, candidate.external_id)
        ]

        # Rule 2: exact name / alias
        exact = _exact_hits(candidate, eligible)
        if exact:
            best = _pick(exact)
            if len(exact) > 1:
                logger.info(
                    "%s %r matches %d records exactly, using %s",
                    kind, candidate.name, len(exact), best.id,
                )
            return MatchResult(outcome="existing", entity_id=best.id, rule="exact_name")

        # Rule 3: token overlap
        partial = [
            e for e in eligible
            if any(
                tokens_overlap(c, n)
                for c in candidate.all_names()
                for n in e.all_names()
            )
        ]
        if len(partial) == 1:
            return MatchResult(
                outcome="existing", entity_id=partial[0].id, rule="token_overlap"
            )
        if len(partial) > 1:
            err = AmbiguousMatch(candidate.name, [e.id for e in partial])
            logger.warning("%s; creating new %s", err, kind)

        # Rule 4
        return MatchResult.create_new()

    def match_name(self, name: str, kind: EntityKind = "person") -> MatchResult:
        """Match a bare name (no aliases, no identifier)."""
        return self.match(CandidateRecord(name=name), kind=kind)

    def find_by_name(self, name: str, kind: EntityKind = "person") -> Entity | None:
        """Resolve a name to the stored entity, or None."""
        result = self.match_name(name, kind=kind)
        if result.is_new or result.entity_id is None:
            return None
        if kind == "person":
            return self._people.get(result.entity_id)
        return self._organizations.get(result.entity_id)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _entities(self, kind: EntityKind) -> list[Entity]:
        if kind == "person":
            return list(self._people.list_all())
        if kind == "organization":
            return list(self._organizations.list_all())
        raise ValueError(f"Unknown entity kind: {kind!r}")

    def _by_external_id(
        self, kind: EntityKind, external_id: str, entities: list[Entity]
    ) -> Entity | None:
        if kind == "person":
            return self._people.get_by_external_id(external_id)
        # Organizations may still hold duplicates before dedup; lowest id wins
        owners = [e for e in entities if e.external_id == external_id]
        return min(owners, key=lambda e: e.id) if owners else None


def _shares_a_name(entity: Entity, candidate: CandidateRecord) -> bool:
    known = {normalize_name(n) for n in entity.all_names()}
    return any(normalize_name(n) in known for n in candidate.all_names())


def _identifiers_disagree(a: str | None, b: str | None) -> bool:
    """Two distinct identifiers mean two distinct real-world entities."""
    return bool(a) and bool(b) and a != b


def _exact_hits(candidate: CandidateRecord, entities: list[Entity]) -> list[_Hit]:
    wanted = {normalize_name(n) for n in candidate.all_names() if n.strip()}
    hits: list[_Hit] = []
    for e in entities:
        if normalize_name(e.name) in wanted:
            hits.append(_Hit(e, via_canonical=True))
        elif any(normalize_name(a) in wanted for a in e.aliases):
            hits.append(_Hit(e, via_canonical=False))
    return hits


def _pick(hits: list[_Hit]) -> Entity:
    """Canonical-name hits first, then entities with an identifier, then lowest id."""
    best = min(
        hits,
        key=lambda h: (not h.via_canonical, h.entity.external_id is None, h.entity.id),
    )
    return best.entity
