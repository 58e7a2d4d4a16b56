"""
Pytest configuration and fixtures
"""
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from scival_explorer.main import create_app
from scival_explorer.settings import Settings

BASE_URL = "https://api.test"


class StubUpstream:
    """
    Route table for httpx.MockTransport keyed by URL path. Each value is either a
    JSON-able body (200) or an httpx.Response / callable(request) for anything else.
    Every request is recorded.
    """

    def __init__(self, routes: Optional[Dict[str, Any]] = None):
        self.routes: Dict[str, Any] = dict(routes or {})
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(request.url.raw_path.decode().split("?")[0])
        if route is None:
            return httpx.Response(404, json={"service-error": {"status": {"statusCode": "RESOURCE_NOT_FOUND", "statusText": "not found"}}})
        if callable(route):
            return route(request)
        if isinstance(route, httpx.Response):
            return route
        return httpx.Response(200, json=route)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def paths(self) -> List[str]:
        return [r.url.path for r in self.requests]


@pytest.fixture
def settings() -> Settings:
    return Settings(
        api_key="test-api-key",
        inst_token="test-inst-token",
        base_url=BASE_URL,
        request_budget_s=5.0,
        upstream_timeout_s=2.0,
    )


@pytest.fixture
def upstream() -> StubUpstream:
    return StubUpstream()


@pytest.fixture
def make_client(settings: Settings, upstream: StubUpstream) -> Callable[..., TestClient]:
    def _make(custom_settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> TestClient:
        app = create_app(custom_settings or settings, transport=transport or upstream.transport)
        return TestClient(app)
    return _make


# ------------------------------------------------------------------------------
# Upstream payloads (trimmed copies of real Scopus / SciVal responses)
# ------------------------------------------------------------------------------

AUTHOR_METRICS = {
    "results": [
        {
            "metrics": [
                {"metricType": "ScholarlyOutput", "value": 1234},
                {"metricType": "CitationCount", "value": 56789},
                {"metricType": "FieldWeightedCitationImpact", "value": 2.3456},
                {"metricType": "hIndices", "values": [{"indexType": "h5Index", "value": 17}]},
                {
                    "metricType": "Collaboration",
                    "values": [{"collabType": "Institutional collaboration", "value": 12, "percentage": 25.5}],
                },
            ],
            "author": {"id": 12345, "name": "Curie, Marie", "link": {}},
        }
    ]
}

AUTHOR_DOCS = {
    "search-results": {
        "opensearch:totalResults": "2",
        "entry": [
            {
                "eid": "2-s2.0-85000000001",
                "dc:title": "Radioactive Substances",
                "citedby-count": "4321",
                "prism:coverDate": "2021-05-01",
            },
            {
                "eid": "2-s2.0-85000000002",
                "dc:title": "On Polonium",
                "citedby-count": "12",
                "prism:coverDate": "2020-01-01",
            },
        ],
    }
}

AUTHOR_PROFILE = {
    "author-retrieval-response": [
        {
            "coredata": {"document-count": "42", "cited-by-count": "9000", "citation-count": "12000"},
            "author-profile": {
                "preferred-name": {"given-name": "Marie", "surname": "Curie", "indexed-name": "Curie M."},
                "publication-range": {"@start": "1898", "@end": "1934"},
                "affiliation-current": {"affiliation": {"ip-doc": {"afdispname": "Sorbonne University"}}},
            },
        }
    ]
}

AUTHOR_SEARCH = {
    "search-results": {
        "opensearch:totalResults": "1",
        "entry": [
            {
                "dc:identifier": "AUTHOR_ID:12345",
                "preferred-name": {"surname": "Curie", "given-name": "Marie"},
                "affiliation-current": {"affiliation-name": "Sorbonne University", "affiliation-country": "France"},
                "document-count": "42",
            }
        ],
    }
}

ABSTRACT = {
    "abstracts-retrieval-response": {
        "coredata": {
            "eid": "2-s2.0-85000000001",
            "dc:title": "Radioactive Substances",
            "dc:description": "We report on the discovery of two new elements.",
            "prism:publicationName": "Comptes Rendus",
            "prism:coverDate": "1898-07-18",
            "citedby-count": "4321",
        },
        "authors": {"author": [{"@auid": "12345", "ce:indexed-name": "Curie M."}]},
    }
}


def entity_metrics(entity: str, ident: Any, name: str) -> Dict[str, Any]:
    return {
        "results": [
            {
                "metrics": [
                    {"metricType": "ScholarlyOutput", "value": 100},
                    {"metricType": "CitationsPerPublication", "value": 7.25},
                ],
                entity: {"id": ident, "name": name},
            }
        ]
    }
