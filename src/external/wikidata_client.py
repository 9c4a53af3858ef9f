# src/external/wikidata_client.py — v1
"""Wikidata implementation of KnowledgeSource over the public MediaWiki API.

Uses wbsearchentities for search and wbgetentities for details. Claims read:
  P18 image, P106 occupations, P108 employers,
  P856 website, P2002 X, P2397 YouTube, P4003 LinkedIn, P2037 GitHub,
  P185 doctoral advisor, P802 doctoral student, P1327 partner.

HTTP errors propagate (httpx.HTTPStatusError / TransportError); callers wrap
calls in `with_retry`.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Any
from urllib.parse import quote

import httpx

from peoplegraph.config.settings import Settings
from peoplegraph.core.models import LinkType, OfficialLink
from peoplegraph.external.base_knowledge_source import (
    ExternalEntity,
    ExternalOrganization,
    ExternalRelation,
    KnowledgeSource,
    SearchHit,
)

logger = logging.getLogger(__name__)

# Claim property -> relation type in the source's own (canonical) terms
RELATION_PROPERTIES: dict[str, tuple[str, str]] = {
    "P185": ("advisor", "doctoral advisor"),
    "P802": ("advisee", "doctoral student"),
    "P1327": ("collaborator", "partner"),
}

# Claim property -> (link type, url template); template None = value is the url
LINK_PROPERTIES: dict[str, tuple[LinkType, str | None]] = {
    "P856": (LinkType.WEBSITE, None),
    "P2002": (LinkType.X, "https://x.com/{}"),
    "P2397": (LinkType.YOUTUBE, "https://www.youtube.com/channel/{}"),
    "P4003": (LinkType.LINKEDIN, "https://www.linkedin.com/in/{}"),
    "P2037": (LinkType.GITHUB, "https://github.com/{}"),
}

MAX_LABELED_CLAIMS = 5
_LABEL_BATCH = 50


def commons_image_url(filename: str, width: int = 200) -> str:
    """Thumbnail URL of a Wikimedia Commons file."""
    clean = filename.replace(" ", "_")
    digest = hashlib.md5(clean.encode("utf-8")).hexdigest()  # noqa: S324
    name = quote(clean)
    return (
        "https://upload.wikimedia.org/wikipedia/commons/thumb/"
        f"{digest[0]}/{digest[:2]}/{name}/{width}px-{name}"
    )


def _claim_values(claims: dict[str, Any], prop: str) -> list[Any]:
    values = []
    for claim in claims.get(prop, []):
        value = (claim.get("mainsnak") or {}).get("datavalue", {}).get("value")
        if value is not None:
            values.append(value)
    return values


def _claim_ids(claims: dict[str, Any], prop: str) -> list[str]:
    return [
        v["id"] for v in _claim_values(claims, prop)
        if isinstance(v, dict) and v.get("id")
    ]


def _pick_label(entity: dict[str, Any], languages: tuple[str, ...]) -> str | None:
    labels = entity.get("labels") or {}
    for lang in languages:
        if lang in labels:
            return labels[lang].get("value")
    return None


def extract_official_links(claims: dict[str, Any]) -> list[OfficialLink]:
    links: list[OfficialLink] = []
    for prop, (link_type, template) in LINK_PROPERTIES.items():
        values = _claim_values(claims, prop)
        if not values or not isinstance(values[0], str):
            continue
        value = values[0]
        if template is None:
            links.append(OfficialLink(type=link_type, url=value))
        else:
            handle = f"@{value}" if link_type is LinkType.X else value
            links.append(
                OfficialLink(type=link_type, url=template.format(value), handle=handle)
            )
    return links


class WikidataClient(KnowledgeSource):
    """Async Wikidata client.

    Args:
        api_url: MediaWiki API endpoint.
        user_agent: User-Agent header (Wikimedia policy requires one).
        timeout_s: Per-request timeout.
        language: Preferred label language.
        client: Optional pre-built httpx.AsyncClient (tests use MockTransport).
    """

    def __init__(
        self,
        api_url: str = "https://www.wikidata.org/w/api.php",
        user_agent: str = "peoplegraph/0.4",
        timeout_s: float = 10.0,
        language: str = "en",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_url = api_url
        self._language = language
        self._client = client or httpx.AsyncClient(
            timeout=timeout_s, headers={"User-Agent": user_agent}
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> WikidataClient:
        return cls(
            api_url=settings.knowledge_api_url,
            user_agent=settings.knowledge_user_agent,
            timeout_s=settings.knowledge_timeout_s,
            language=settings.knowledge_language,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _get(self, **params: str) -> dict[str, Any]:
        params.setdefault("format", "json")
        response = await self._client.get(self._api_url, params=params)
        response.raise_for_status()
        return response.json()

    @property
    def _languages(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys((self._language, "en")))

    async def search(self, query: str, limit: int = 5) -> list[SearchHit]:
        data = await self._get(
            action="wbsearchentities",
            search=query,
            language=self._language,
            uselang=self._language,
            type="item",
            limit=str(limit),
        )
        hits = [
            SearchHit(
                external_id=item["id"],
                label=item.get("label") or item["id"],
                description=item.get("description") or "",
            )
            for item in data.get("search", [])
            if item.get("id")
        ]
        logger.debug("Wikidata search %r: %d hit(s)", query, len(hits))
        return hits

    async def _fetch_entity(self, external_id: str, props: str) -> dict[str, Any] | None:
        data = await self._get(
            action="wbgetentities",
            ids=external_id,
            languages="|".join(self._languages),
            props=props,
        )
        entity = (data.get("entities") or {}).get(external_id)
        if not entity or "missing" in entity:
            return None
        return entity

    async def get_labels(self, external_ids: list[str]) -> dict[str, str]:
        """Labels for many ids; unknown ids map to themselves."""
        labels: dict[str, str] = {}
        ids = list(dict.fromkeys(external_ids))
        for start in range(0, len(ids), _LABEL_BATCH):
            batch = ids[start:start + _LABEL_BATCH]
            data = await self._get(
                action="wbgetentities",
                ids="|".join(batch),
                languages="|".join(self._languages),
                props="labels",
            )
            entities = data.get("entities") or {}
            for qid in batch:
                labels[qid] = _pick_label(entities.get(qid) or {}, self._languages) or qid
        return labels

    async def get_entity(self, external_id: str) -> ExternalEntity | None:
        entity = await self._fetch_entity(
            external_id, "labels|descriptions|aliases|claims"
        )
        if entity is None:
            return None

        claims = entity.get("claims") or {}
        descriptions = entity.get("descriptions") or {}
        description = next(
            (descriptions[lang]["value"] for lang in self._languages if lang in descriptions),
            "",
        )
        aliases: list[str] = []
        for lang in self._languages:
            aliases.extend(a["value"] for a in (entity.get("aliases") or {}).get(lang, []))

        occupation_ids = _claim_ids(claims, "P106")[:MAX_LABELED_CLAIMS]
        employer_ids = _claim_ids(claims, "P108")[:MAX_LABELED_CLAIMS]
        labels = await self.get_labels(occupation_ids + employer_ids)

        images = [v for v in _claim_values(claims, "P18") if isinstance(v, str)]
        return ExternalEntity(
            external_id=external_id,
            label=_pick_label(entity, self._languages) or external_id,
            description=description,
            aliases=list(dict.fromkeys(aliases)),
            image_url=commons_image_url(images[0]) if images else None,
            occupations=[labels[q] for q in occupation_ids],
            organizations=[
                ExternalOrganization(external_id=q, label=labels[q])
                for q in employer_ids
            ],
            official_links=extract_official_links(claims),
        )

    async def get_relations(self, external_id: str) -> list[ExternalRelation]:
        entity = await self._fetch_entity(external_id, "claims")
        if entity is None:
            return []
        claims = entity.get("claims") or {}

        found: list[tuple[str, str, str]] = []
        for prop, (relation_type, description) in RELATION_PROPERTIES.items():
            for qid in _claim_ids(claims, prop):
                found.append((qid, relation_type, description))
        labels = await self.get_labels([qid for qid, _, _ in found])

        return [
            ExternalRelation(
                related_external_id=qid,
                related_label=labels.get(qid, qid),
                relation_type=relation_type,
                description=description,
            )
            for qid, relation_type, description in found
        ]
