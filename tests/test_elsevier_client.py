import dataclasses

import httpx
import pytest

from scival_explorer.clients.elsevier import (
    EndpointRequest, Failure, FailureKind, Success, build_request, fetch,
)
from scival_explorer.settings import Settings

from conftest import BASE_URL, StubUpstream


def test_build_request_joins_base_and_attaches_credentials(settings):
    req = build_request(settings, "/analytics/scival/author/metrics", {"authors": "12345"})

    assert req.url == f"{BASE_URL}/analytics/scival/author/metrics"
    assert req.params == {"authors": "12345"}
    assert req.headers["X-ELS-APIKey"] == "test-api-key"
    assert req.headers["X-ELS-Insttoken"] == "test-inst-token"
    assert req.headers["Content-Type"] == "application/json"
    assert "X-ELS-Authtoken" not in req.headers


def test_build_request_adds_auth_token_when_configured():
    settings = Settings(api_key="k", inst_token="i", auth_token="secret-auth", base_url=BASE_URL + "/")
    req = build_request(settings, "/content/search/scopus")

    assert req.url == f"{BASE_URL}/content/search/scopus"
    assert req.headers["X-ELS-Authtoken"] == "secret-auth"


def test_endpoint_request_is_immutable(settings):
    req = build_request(settings, "/x")
    with pytest.raises(dataclasses.FrozenInstanceError):
        req.url = "/y"  # type: ignore[misc]


@pytest.mark.asyncio
async def test_fetch_success_sends_params_and_headers(settings):
    upstream = StubUpstream({"/content/search/scopus": {"search-results": {"entry": []}}})
    req = build_request(settings, "/content/search/scopus", {"query": "au-id(12345)", "count": 5})

    async with httpx.AsyncClient(transport=upstream.transport) as http:
        result = await fetch(http, req)

    assert result == Success({"search-results": {"entry": []}})
    sent = upstream.requests[0]
    assert sent.url.params["query"] == "au-id(12345)"
    assert sent.url.params["count"] == "5"
    assert sent.headers["X-ELS-APIKey"] == "test-api-key"


@pytest.mark.asyncio
async def test_fetch_non_success_status_is_upstream_error(settings):
    upstream = StubUpstream({
        "/analytics/scival/author/metrics": httpx.Response(
            401, json={"service-error": {"status": {"statusCode": "AUTHENTICATION_ERROR", "statusText": "Invalid API Key"}}},
        )
    })
    async with httpx.AsyncClient(transport=upstream.transport) as http:
        result = await fetch(http, build_request(settings, "/analytics/scival/author/metrics"))

    assert isinstance(result, Failure)
    assert result.kind == FailureKind.UPSTREAM_ERROR
    assert result.status_code == 401
    assert "AUTHENTICATION_ERROR" in result.message
    assert "test-api-key" not in result.message


@pytest.mark.asyncio
async def test_fetch_non_json_body_is_malformed(settings):
    upstream = StubUpstream({"/content/search/author": httpx.Response(200, text="<html>maintenance</html>")})
    async with httpx.AsyncClient(transport=upstream.transport) as http:
        result = await fetch(http, build_request(settings, "/content/search/author"))

    assert isinstance(result, Failure)
    assert result.kind == FailureKind.MALFORMED_RESPONSE


@pytest.mark.asyncio
async def test_fetch_transport_error_is_unavailable(settings):
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(refuse)) as http:
        result = await fetch(http, build_request(settings, "/content/search/author"))

    assert isinstance(result, Failure)
    assert result.kind == FailureKind.UPSTREAM_UNAVAILABLE


@pytest.mark.asyncio
async def test_fetch_timeout_is_reported_separately(settings):
    def slow(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(slow)) as http:
        result = await fetch(http, build_request(settings, "/content/search/author"))

    assert isinstance(result, Failure)
    assert result.kind == FailureKind.UPSTREAM_TIMEOUT


@pytest.mark.asyncio
async def test_fetch_is_idempotent(settings):
    upstream = StubUpstream({"/analytics/scival/topic/metrics": {"results": [{"metrics": []}]}})
    req = EndpointRequest(url=f"{BASE_URL}/analytics/scival/topic/metrics", params={"topicIds": "7"})

    async with httpx.AsyncClient(transport=upstream.transport) as http:
        first = await fetch(http, req)
        second = await fetch(http, req)

    assert first == second
    assert len(upstream.requests) == 2
    assert upstream.requests[0].url == upstream.requests[1].url


@pytest.mark.asyncio
async def test_fetch_redirect_is_upstream_error(settings):
    upstream = StubUpstream({
        "/analytics/scival/topic/metrics": httpx.Response(302, headers={"Location": "/login"}, json={"results": "stale"}),
    })
    async with httpx.AsyncClient(transport=upstream.transport) as http:
        result = await fetch(http, build_request(settings, "/analytics/scival/topic/metrics"))

    assert isinstance(result, Failure)
    assert result.kind == FailureKind.UPSTREAM_ERROR
    assert result.status_code == 302


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [httpx.DecodingError, httpx.TooManyRedirects])
async def test_fetch_request_errors_are_unavailable(settings, error):
    def broken(request: httpx.Request) -> httpx.Response:
        raise error("bad response", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(broken)) as http:
        result = await fetch(http, build_request(settings, "/content/search/author"))

    assert isinstance(result, Failure)
    assert result.kind == FailureKind.UPSTREAM_UNAVAILABLE
