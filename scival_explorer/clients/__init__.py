"""Upstream clients (Elsevier Scopus / SciVal)."""

from .elsevier import (  # noqa: F401
    EndpointRequest, Failure, FailureKind, Success, UpstreamResult, build_request, fetch,
)
