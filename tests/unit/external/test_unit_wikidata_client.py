# tests/unit/external/test_unit_wikidata_client.py — v1
"""Tests for external/wikidata_client.py (httpx.MockTransport, no network)."""

from __future__ import annotations

import httpx
import pytest

from peoplegraph.core.models import LinkType
from peoplegraph.external.wikidata_client import (
    WikidataClient,
    commons_image_url,
    extract_official_links,
)


def _claim(value) -> dict:
    return {"mainsnak": {"datavalue": {"value": value}}}


def _item(qid: str) -> dict:
    return _claim({"entity-type": "item", "id": qid})


HINTON = {
    "id": "Q92743",
    "labels": {"en": {"value": "Geoffrey Hinton"}},
    "descriptions": {"en": {"value": "British-Canadian computer scientist"}},
    "aliases": {"en": [{"value": "Geoffrey E. Hinton"}, {"value": "Geoff Hinton"}]},
    "claims": {
        "P18": [_claim("Geoffrey Hinton at UBC.jpg")],
        "P106": [_item("Q82594"), _item("Q1622272")],
        "P108": [_item("Q95"), _item("Q180865")],
        "P2002": [_claim("geoffreyhinton")],
        "P856": [_claim("https://www.cs.toronto.edu/~hinton/")],
        "P185": [_item("Q6790427")],
        "P802": [_item("Q21712134"), _item("Q3571662")],
    },
}

LABELS = {
    "Q82594": "computer scientist",
    "Q1622272": "university teacher",
    "Q95": "Google",
    "Q180865": "University of Toronto",
    "Q6790427": "Christopher Longuet-Higgins",
    "Q21712134": "Ilya Sutskever",
}


def _handler(request: httpx.Request) -> httpx.Response:
    params = request.url.params
    action = params["action"]
    if action == "wbsearchentities":
        if params["search"] == "nobody":
            return httpx.Response(200, json={"search": []})
        return httpx.Response(200, json={"search": [
            {"id": "Q92743", "label": "Geoffrey Hinton",
             "description": "computer scientist"},
            {"id": "Q5", "label": None},
        ]})
    if action == "wbgetentities":
        ids = params["ids"].split("|")
        if params["props"] == "labels":
            return httpx.Response(200, json={"entities": {
                q: {"id": q, "labels": {"en": {"value": LABELS[q]}}} if q in LABELS
                else {"id": q, "missing": ""}
                for q in ids
            }})
        if ids == ["Q92743"]:
            return httpx.Response(200, json={"entities": {"Q92743": HINTON}})
        if ids == ["Q500"]:
            return httpx.Response(500, json={})
        return httpx.Response(200, json={"entities": {ids[0]: {"id": ids[0], "missing": ""}}})
    return httpx.Response(400)


@pytest.fixture
def requests_seen() -> list[httpx.Request]:
    return []


@pytest.fixture
def client(requests_seen):
    def recording(request: httpx.Request) -> httpx.Response:
        requests_seen.append(request)
        return _handler(request)

    http = httpx.AsyncClient(transport=httpx.MockTransport(recording))
    return WikidataClient(api_url="https://wikidata.test/w/api.php", client=http)


class TestHelpers:
    def test_commons_image_url(self):
        url = commons_image_url("Geoffrey Hinton at UBC.jpg")
        assert url.startswith("https://upload.wikimedia.org/wikipedia/commons/thumb/")
        assert url.endswith("/200px-Geoffrey_Hinton_at_UBC.jpg")

    def test_official_links(self):
        links = extract_official_links(HINTON["claims"])
        by_type = {link.type: link for link in links}
        assert by_type[LinkType.X].url == "https://x.com/geoffreyhinton"
        assert by_type[LinkType.X].handle == "@geoffreyhinton"
        assert by_type[LinkType.WEBSITE].url == "https://www.cs.toronto.edu/~hinton/"
        assert LinkType.GITHUB not in by_type


class TestSearch:
    @pytest.mark.asyncio
    async def test_hits(self, client, requests_seen):
        hits = await client.search("Geoffrey Hinton")
        assert [h.external_id for h in hits] == ["Q92743", "Q5"]
        assert hits[1].label == "Q5"
        assert requests_seen[0].url.params["limit"] == "5"

    @pytest.mark.asyncio
    async def test_no_hits(self, client):
        assert await client.search("nobody") == []


class TestGetEntity:
    @pytest.mark.asyncio
    async def test_parses_claims(self, client):
        entity = await client.get_entity("Q92743")
        assert entity.label == "Geoffrey Hinton"
        assert entity.description == "British-Canadian computer scientist"
        assert entity.aliases == ["Geoffrey E. Hinton", "Geoff Hinton"]
        assert entity.occupations == ["computer scientist", "university teacher"]
        assert [(o.external_id, o.label) for o in entity.organizations] == [
            ("Q95", "Google"), ("Q180865", "University of Toronto"),
        ]
        assert entity.image_url.endswith("Geoffrey_Hinton_at_UBC.jpg")

    @pytest.mark.asyncio
    async def test_missing_entity(self, client):
        assert await client.get_entity("Q0") is None

    @pytest.mark.asyncio
    async def test_http_error_propagates(self, client):
        with pytest.raises(httpx.HTTPStatusError):
            await client.get_entity("Q500")


class TestGetRelations:
    @pytest.mark.asyncio
    async def test_relations(self, client):
        relations = await client.get_relations("Q92743")
        summary = [(r.related_external_id, r.relation_type, r.related_label) for r in relations]
        assert summary == [
            ("Q6790427", "advisor", "Christopher Longuet-Higgins"),
            ("Q21712134", "advisee", "Ilya Sutskever"),
            ("Q3571662", "advisee", "Q3571662"),
        ]

    @pytest.mark.asyncio
    async def test_unknown_entity(self, client):
        assert await client.get_relations("Q0") == []


class TestLabels:
    @pytest.mark.asyncio
    async def test_no_request_for_empty(self, client, requests_seen):
        assert await client.get_labels([]) == {}
        assert requests_seen == []

    @pytest.mark.asyncio
    async def test_deduplicated(self, client, requests_seen):
        labels = await client.get_labels(["Q95", "Q95", "Q404"])
        assert labels == {"Q95": "Google", "Q404": "Q404"}
        assert requests_seen[0].url.params["ids"] == "Q95|Q404"


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_close(self, client):
        await client.close()

    def test_from_settings(self, settings):
        wd = WikidataClient.from_settings(settings)
        assert wd._api_url == settings.knowledge_api_url
