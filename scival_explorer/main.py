from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse
from jinja2 import TemplateError
from starlette.exceptions import HTTPException as StarletteHTTPException

from scival_explorer.registry import build_views
from scival_explorer.render import build_renderer
from scival_explorer.routers.portal_router import error_page, router as portal_router
from scival_explorer.settings import Settings

APP_TITLE = "SciVal Explorer"
APP_VERSION = "1.0.0"

log = logging.getLogger("scival.main")


# ------------------------------------------------------------------------------
# Logging
# ------------------------------------------------------------------------------
def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s :: %(message)s",
        stream=sys.stdout,
    )


# ------------------------------------------------------------------------------
# FastAPI app
# ------------------------------------------------------------------------------
def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Assemble the app. Settings, view table and renderer are built here, once,
    and shared read-only by every request. `transport` lets tests stand in for
    the upstream.
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)
    views = build_views(settings)
    renderer = build_renderer(settings.templates_dir)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.http = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.upstream_timeout_s, connect=min(settings.upstream_timeout_s, 5.0)),
            transport=transport,
        )
        log.info("Server running at: http://%s:%s", settings.host, settings.port)
        try:
            yield
        finally:
            await app.state.http.aclose()

    app = FastAPI(title=APP_TITLE, version=APP_VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.views = views
    app.state.renderer = renderer

    app.include_router(portal_router)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> HTMLResponse:
        return error_page(request, exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> HTMLResponse:
        return error_page(request, 422, "Invalid request parameters.")

    @app.exception_handler(TemplateError)
    async def template_error(request: Request, exc: TemplateError) -> HTMLResponse:
        log.exception("Template rendering failed for %s", request.url.path)
        return HTMLResponse("<h1>500</h1><p>The page could not be rendered.</p>", status_code=500)

    # ------------------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------------------
    @app.get("/healthz", include_in_schema=False)
    async def healthz():
        return {"ok": True, "version": APP_VERSION}

    @app.get("/livez", include_in_schema=False)
    async def livez():
        return {"ok": True, "templates": len(renderer.templates)}

    @app.get("/readyz", include_in_schema=False)
    async def readyz():
        return {
            "ok": bool(settings.api_key and settings.inst_token),
            "upstream": settings.base_url,
            "author_profile_enabled": settings.author_profile_enabled,
            "request_budget_s": settings.request_budget_s,
        }

    return app


def run() -> None:
    import uvicorn

    settings = Settings.from_env()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
