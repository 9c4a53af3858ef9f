# src/core/models.py — v2
"""Shared Pydantic domain models used across modules.

No module redefines these types — all imports come from core.models.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator


def new_id() -> str:
    """Mint a new internal identifier."""
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive timestamps are taken as UTC; aware ones are converted to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# === LINKS ===


class LinkType(str, Enum):
    """Kind of an official link attached to a person."""

    X = "x"
    YOUTUBE = "youtube"
    GITHUB = "github"
    LINKEDIN = "linkedin"
    BLOG = "blog"
    WEBSITE = "website"


# Legacy spellings found in stored link payloads
_LINK_TYPE_ALIASES: dict[str, str] = {
    "twitter": "x",
    "x.com": "x",
    "homepage": "website",
    "site": "website",
}


class OfficialLink(BaseModel):
    """One official link. The `type` field is the only discriminator."""

    type: LinkType
    url: str
    handle: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _coerce_legacy_keys(cls, data: Any) -> Any:
        # Older payloads used "platform" instead of "type"
        if isinstance(data, dict):
            data = dict(data)
            if "type" not in data and "platform" in data:
                data["type"] = data.pop("platform")
            else:
                data.pop("platform", None)
            kind = data.get("type")
            if isinstance(kind, str):
                kind = kind.strip().lower()
                data["type"] = _LINK_TYPE_ALIASES.get(kind, kind)
        return data


# === ENTITIES ===


class Person(BaseModel):
    """Canonical identity for one human."""

    id: str = Field(default_factory=new_id)
    name: str
    name_localized: str | None = None
    aliases: list[str] = Field(default_factory=list)
    external_id: str | None = None
    description: str = ""
    topics: list[str] = Field(default_factory=list)
    occupations: list[str] = Field(default_factory=list)
    organizations: list[str] = Field(default_factory=list)
    official_links: list[OfficialLink] = Field(default_factory=list)

    # --- Influence signals ---
    citation_count: int = 0
    h_index: int = 0
    qualitative_score: float = 0.0
    card_count: int = 0

    # --- Derived metrics ---
    influence_score: float = 0.0
    topic_ranks: dict[str, int] = Field(default_factory=dict)

    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("created_at")
    @classmethod
    def _created_utc(cls, v: datetime) -> datetime:
        return as_utc(v)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be empty")
        return v

    @model_validator(mode="after")
    def _dedupe_aliases(self) -> Person:
        seen = {self.name.casefold()}
        unique: list[str] = []
        for alias in self.aliases:
            alias = alias.strip()
            key = alias.casefold()
            if alias and key not in seen:
                seen.add(key)
                unique.append(alias)
        self.aliases = unique
        return self

    def all_names(self) -> list[str]:
        """Canonical name followed by aliases."""
        return [self.name, *self.aliases]


class Organization(BaseModel):
    """Canonical identity for an institution."""

    id: str = Field(default_factory=new_id)
    name: str
    name_localized: str | None = None
    external_id: str | None = None
    org_type: Literal["company", "university", "other"] = "other"
    aliases: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("created_at")
    @classmethod
    def _created_utc(cls, v: datetime) -> datetime:
        return as_utc(v)

    def all_names(self) -> list[str]:
        return [self.name, *self.aliases]


class AffiliationFact(BaseModel):
    """A person's role at an organization."""

    id: str = Field(default_factory=new_id)
    person_id: str
    organization_id: str
    role: str = ""
    start_date: date | None = None
    end_date: date | None = None

    def identity_key(self) -> tuple[str, str, date | None]:
        """Facts with the same key on one organization are duplicates."""
        return (self.person_id, self.role.strip().casefold(), self.start_date)


# === RELATIONS ===


class RelationType(str, Enum):
    ADVISOR = "advisor"
    COFOUNDER = "cofounder"
    COLLEAGUE = "colleague"
    COLLABORATOR = "collaborator"


ANTISYMMETRIC_TYPES: frozenset[RelationType] = frozenset({RelationType.ADVISOR})


class RelationEdge(BaseModel):
    """Directed typed fact: (A, B, t) means "B is the t of A"."""

    id: str = Field(default_factory=new_id)
    source_id: str
    target_id: str
    relation_type: RelationType
    description: str = ""
    provenance: str = "manual"
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    # False until the edge is known to follow the canonical direction
    normalized: bool = False
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("created_at")
    @classmethod
    def _created_utc(cls, v: datetime) -> datetime:
        return as_utc(v)

    @model_validator(mode="after")
    def _no_self_loop(self) -> RelationEdge:
        if self.source_id == self.target_id:
            raise ValueError("relation edge cannot point at its own source")
        return self

    @property
    def key(self) -> tuple[str, str, RelationType]:
        return (self.source_id, self.target_id, self.relation_type)


class ContradictionPair(BaseModel):
    """Both (a, b, advisor) and (b, a, advisor) exist; person_a < person_b."""

    person_a: str
    person_b: str
    edge_ab_id: str
    edge_ba_id: str
    relation_type: RelationType = RelationType.ADVISOR


# === CONTENT ===


class ContentItem(BaseModel):
    """A piece of content associated with a person (video, repo, post...)."""

    id: str = Field(default_factory=new_id)
    person_id: str
    source_type: str
    title: str = ""
    url: str = ""
    published_at: datetime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


# === MATCHING ===


class CandidateRecord(BaseModel):
    """An external record to resolve against canonical entities."""

    name: str
    aliases: list[str] = Field(default_factory=list)
    external_id: str | None = None

    def all_names(self) -> list[str]:
        return [self.name, *self.aliases]


class MatchResult(BaseModel):
    """Outcome of an entity match."""

    outcome: Literal["existing", "create_new"]
    entity_id: str | None = None
    rule: Literal["external_id", "exact_name", "token_overlap"] | None = None

    @property
    def is_new(self) -> bool:
        return self.outcome == "create_new"

    @classmethod
    def create_new(cls) -> MatchResult:
        return cls(outcome="create_new")
