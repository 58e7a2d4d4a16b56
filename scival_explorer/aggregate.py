# scival_explorer/aggregate.py
"""
Fan-out/fan-in of independent upstream calls into one render context.

Every task of a view is dispatched at once; the join waits for all of them to
settle and then either builds the context (one entry per task label) or
reports the first failing task in task order. A failing task does not cancel
its siblings; their results are simply dropped. The only cancellation is the
optional per-page budget.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import httpx

from scival_explorer.clients.elsevier import (
    EndpointRequest, Failure, FailureKind, Success, UpstreamResult, fetch,
)

log = logging.getLogger("scival.aggregate")

RenderContext = Dict[str, Any]
Extractor = Callable[[Any], Any]

# What an extractor may raise when the upstream body lacks the documented shape
_SHAPE_ERRORS = (KeyError, IndexError, TypeError, ValueError)


@dataclass(frozen=True)
class AggregationTask:
    label: str
    request: EndpointRequest
    extractor: Extractor


@dataclass(frozen=True)
class AggregationError:
    failed_label: str
    cause: Failure

    @property
    def status_code(self) -> int:
        return 504 if self.cause.kind == FailureKind.UPSTREAM_TIMEOUT else 502


Aggregation = Union[RenderContext, AggregationError]


async def _run_task(http: httpx.AsyncClient, task: AggregationTask) -> UpstreamResult:
    result = await fetch(http, task.request)
    if isinstance(result, Failure):
        return result
    try:
        return Success(task.extractor(result.json))
    except _SHAPE_ERRORS as e:
        return Failure(
            FailureKind.MALFORMED_RESPONSE,
            f"{task.label} response missing expected field ({e.__class__.__name__}: {e})",
        )


async def aggregate(
    http: httpx.AsyncClient,
    tasks: Sequence[AggregationTask],
    *,
    budget_s: Optional[float] = None,
) -> Aggregation:
    labels = [t.label for t in tasks]
    if len(set(labels)) != len(labels):
        raise ValueError(f"duplicate task labels: {labels}")
    if not tasks:
        return {}

    running: List[asyncio.Task] = [asyncio.ensure_future(_run_task(http, t)) for t in tasks]
    _, pending = await asyncio.wait(running, timeout=budget_s)
    for fut in pending:
        fut.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)

    outcomes: List[UpstreamResult] = []
    for task, fut in zip(tasks, running):
        if fut in pending:
            outcomes.append(Failure(FailureKind.UPSTREAM_TIMEOUT, f"{task.label} exceeded the {budget_s}s budget"))
        else:
            outcomes.append(fut.result())

    for task, outcome in zip(tasks, outcomes):
        if isinstance(outcome, Failure):
            log.warning("Aggregation failed at %r: %s %s", task.label, outcome.kind.value, outcome.message)
            return AggregationError(failed_label=task.label, cause=outcome)

    context: RenderContext = {}
    for task, outcome in zip(tasks, outcomes):
        context[task.label] = outcome.json
        log.debug("Aggregated %r (%s)", task.label, type(outcome.json).__name__)
    return context
