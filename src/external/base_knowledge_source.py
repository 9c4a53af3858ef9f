# src/external/base_knowledge_source.py — v1
"""Abstract interfaces of the external collaborators.

KnowledgeSource: external knowledge graph (search + entity + relations).
Translator: localizes names, descriptions and roles.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel, Field

from peoplegraph.core.models import OfficialLink


class SearchHit(BaseModel):
    external_id: str
    label: str
    description: str = ""


class ExternalOrganization(BaseModel):
    """An employer / affiliation as reported by the knowledge source."""

    external_id: str | None = None
    label: str
    role: str = ""


class ExternalEntity(BaseModel):
    """Entity details from the knowledge source."""

    external_id: str
    label: str
    description: str = ""
    aliases: list[str] = Field(default_factory=list)
    image_url: str | None = None
    occupations: list[str] = Field(default_factory=list)
    organizations: list[ExternalOrganization] = Field(default_factory=list)
    official_links: list[OfficialLink] = Field(default_factory=list)


class ExternalRelation(BaseModel):
    """A relation claim on an entity, in the source's own terms.

    relation_type may be `advisee` (the related entity is the subject's
    student); normalization happens at ingestion.
    """

    related_external_id: str
    related_label: str = ""
    relation_type: str
    description: str = ""


class KnowledgeSource(ABC):
    """External knowledge-resolution collaborator."""

    @abstractmethod
    async def search(self, query: str, limit: int = 5) -> list[SearchHit]:
        """Search entities by free text. Empty list when nothing matches."""

    @abstractmethod
    async def get_entity(self, external_id: str) -> ExternalEntity | None:
        """Fetch entity details, or None if the id is unknown."""

    @abstractmethod
    async def get_relations(self, external_id: str) -> list[ExternalRelation]:
        """Person-to-person relation claims of an entity."""

    async def close(self) -> None:
        """Release network resources."""


class Translator(ABC):
    """Translation collaborator."""

    @abstractmethod
    async def translate(self, text: str) -> str:
        """Translate one string."""

    async def translate_batch(self, texts: list[str]) -> list[str]:
        """Translate many strings. Output has the same length and order."""
        return [await self.translate(t) for t in texts]


class PassthroughTranslator(Translator):
    """Returns every text unchanged (no translation configured)."""

    async def translate(self, text: str) -> str:
        return text

    async def translate_batch(self, texts: list[str]) -> list[str]:
        return list(texts)
