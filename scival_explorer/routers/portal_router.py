# scival_explorer/routers/portal_router.py
"""
HTML routes: search forms, search results, entity detail pages and abstracts.

Each handler picks one ViewSpec from the view table, runs its aggregation and
renders the joined context. A failed aggregation is answered with a generic
502/504 page; nothing from the upstream response or the request headers is
echoed back.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from scival_explorer.aggregate import AggregationError, aggregate
from scival_explorer.registry import EntityType, ViewSpec, ViewTable
from scival_explorer.render import Renderer
from scival_explorer.settings import Settings

log = logging.getLogger("scival.portal")

router = APIRouter(tags=["Portal"])

# Search-form paths are the plural of the entity type
SEARCH_FORMS: Dict[str, EntityType] = {
    "authors": EntityType.AUTHOR,
    "countries": EntityType.COUNTRY,
    "countryGroups": EntityType.COUNTRY_GROUP,
    "institutions": EntityType.INSTITUTION,
    "institutionGroups": EntityType.INSTITUTION_GROUP,
    "topics": EntityType.TOPIC,
}

ERROR_MESSAGES = {
    502: "The bibliometrics service could not be reached or returned an error. Please try again later.",
    504: "The bibliometrics service took too long to answer. Please try again later.",
}


def _renderer(request: Request) -> Renderer:
    return request.app.state.renderer


def _views(request: Request) -> ViewTable:
    return request.app.state.views


def _settings(request: Request) -> Settings:
    return request.app.state.settings


def error_page(request: Request, status_code: int, message: Optional[str] = None) -> HTMLResponse:
    html = _renderer(request).render(
        "error.html",
        {"status_code": status_code, "message": message or ERROR_MESSAGES.get(status_code, "Something went wrong.")},
    )
    return HTMLResponse(html, status_code=status_code)


async def render_view(request: Request, view: ViewSpec, ident: str, extras: Optional[Dict[str, Any]] = None) -> HTMLResponse:
    settings = _settings(request)
    outcome = await aggregate(
        request.app.state.http,
        view.plan(settings, ident),
        budget_s=settings.request_budget_s,
    )
    if isinstance(outcome, AggregationError):
        log.error(
            "%s for %r failed at task %r (%s)",
            view.key, ident, outcome.failed_label, outcome.cause.kind.value,
        )
        return error_page(request, outcome.status_code)
    context = {**view.extras, **(extras or {}), **outcome}
    return HTMLResponse(_renderer(request).render(view.template, context))


# ==============================
# Search
# ==============================

@router.get("/", include_in_schema=False)
async def root():
    return RedirectResponse("/authors")


def _search_form(entity: EntityType):
    async def _form(request: Request) -> HTMLResponse:
        return HTMLResponse(_renderer(request).render("search.html", {"entity_type": entity.value}))
    return _form


for _path, _entity in SEARCH_FORMS.items():
    router.add_api_route(
        f"/{_path}", _search_form(_entity), methods=["GET"],
        response_class=HTMLResponse, name=f"search_form_{_entity.value}",
    )


@router.get("/search", response_class=HTMLResponse)
async def search(
    request: Request,
    entity_type: str = Query(..., alias="entityType"),
    name: str = Query(..., min_length=1, max_length=200),
):
    try:
        entity = EntityType(entity_type)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown entity type: {entity_type}")
    if not name.strip():
        raise HTTPException(status_code=400, detail="Search name must not be blank")
    view = _views(request).search[entity]
    return await render_view(request, view, name.strip(), {"query": name.strip()})


# ==============================
# Detail pages
# ==============================

def _detail_page(entity: EntityType):
    async def _detail(request: Request, ident: str) -> HTMLResponse:
        return await render_view(request, _views(request).detail[entity], ident, {"entity_id": ident})
    return _detail


for _entity in EntityType:
    router.add_api_route(
        f"/{_entity.value}/{{ident}}", _detail_page(_entity), methods=["GET"],
        response_class=HTMLResponse, name=f"detail_{_entity.value}",
    )


@router.get("/abstract/{eid}", response_class=HTMLResponse)
async def abstract(request: Request, eid: str):
    return await render_view(request, _views(request).abstract, eid, {"eid": eid})
