# scival_explorer/clients/elsevier.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

import httpx

from scival_explorer.settings import Settings

log = logging.getLogger("scival.upstream")

USER_AGENT = "scival-explorer/1.0"

# ------------------------------------------------------------------------------------
# Model
# ------------------------------------------------------------------------------------
@dataclass(frozen=True)
class EndpointRequest:
    url: str
    params: Dict[str, Any] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)


class FailureKind(str, Enum):
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"
    UPSTREAM_TIMEOUT = "UPSTREAM_TIMEOUT"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    MALFORMED_RESPONSE = "MALFORMED_RESPONSE"


@dataclass(frozen=True)
class Success:
    json: Any


@dataclass(frozen=True)
class Failure:
    kind: FailureKind
    message: str
    status_code: Optional[int] = None


UpstreamResult = Union[Success, Failure]


# ------------------------------------------------------------------------------------
# Request building
# ------------------------------------------------------------------------------------
def _join_url(base: str, path: str) -> str:
    if not base:
        return path
    if path.startswith("http://") or path.startswith("https://"):
        return path
    if not base.endswith("/") and not path.startswith("/"):
        return f"{base}/{path}"
    if base.endswith("/") and path.startswith("/"):
        return f"{base}{path[1:]}"
    return f"{base}{path}"


def _make_headers(settings: Settings) -> Dict[str, str]:
    headers = {
        "Content-Type": "application/json",
        "Accept": "application/json",
        "User-Agent": USER_AGENT,
        "X-ELS-APIKey": settings.api_key,
        "X-ELS-Insttoken": settings.inst_token,
    }
    if settings.auth_token:
        headers["X-ELS-Authtoken"] = settings.auth_token
    return headers


def build_request(settings: Settings, path: str, params: Optional[Mapping[str, Any]] = None) -> EndpointRequest:
    """
    Path segments must already be escaped by the caller; query values are passed
    raw and encoded once by httpx.
    """
    return EndpointRequest(
        url=_join_url(settings.base_url, path),
        params=dict(params or {}),
        headers=_make_headers(settings),
    )


# ------------------------------------------------------------------------------------
# Fetch
# ------------------------------------------------------------------------------------
def _service_error_text(resp: httpx.Response) -> Optional[str]:
    # Elsevier error envelope: {"service-error": {"status": {"statusCode": .., "statusText": ..}}}
    try:
        body = resp.json()
        status = body["service-error"]["status"]
        return f"{status.get('statusCode', '')}: {status.get('statusText', '')}".strip(": ")
    except Exception:
        return None


async def fetch(http: httpx.AsyncClient, request: EndpointRequest) -> UpstreamResult:
    """
    Single GET against the upstream; no retries. Never raises for upstream
    problems, the outcome is always a Success or a Failure.
    """
    log.debug("GET %s params=%s", request.url, request.params)
    try:
        r = await http.get(request.url, params=request.params, headers=request.headers)
    except httpx.TimeoutException as e:
        log.warning("Upstream timeout for %s: %s", request.url, e.__class__.__name__)
        return Failure(FailureKind.UPSTREAM_TIMEOUT, f"timeout calling {request.url}")
    except httpx.RequestError as e:
        # transport failures, undecodable bodies, redirect loops
        log.warning("Upstream unavailable for %s: %s", request.url, e)
        return Failure(FailureKind.UPSTREAM_UNAVAILABLE, f"{request.url} unreachable: {e.__class__.__name__}")

    if not r.is_success:
        detail = _service_error_text(r) or r.reason_phrase
        log.warning("Upstream %s -> %s (%s)", request.url, r.status_code, detail)
        return Failure(
            FailureKind.UPSTREAM_ERROR,
            f"{request.url} -> {r.status_code} {detail}".strip(),
            status_code=r.status_code,
        )

    try:
        return Success(r.json())
    except ValueError:
        log.warning("Upstream %s returned a non-JSON body", request.url)
        return Failure(FailureKind.MALFORMED_RESPONSE, f"{request.url} returned a non-JSON body", status_code=r.status_code)
