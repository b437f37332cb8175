"""State API: CRUD façade for tasks and projects.

    GET  /state/tasks      -> 200 {"tasks": [...]}
    POST /state/tasks      -> 200 {"tasks": [...saved]} | 400 {"error": ...}
    GET  /state/projects   -> 200 {"projects": [...]}
    POST /state/projects   -> 200 {"projects": [...saved]} | 400 {"error": ...}

Anything else answers 404 {"error": "Not found"}; an unexpected failure
answers 500 {"error": "Internal server error"}.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from pabridge.config import settings
from pabridge.observability.logging import configure_logging
from pabridge.state_api.stores import InMemoryStateStore, StateStore
from pabridge.state_api.tables import TableStateStore

logger = structlog.get_logger()


def build_store(database_url: str = "") -> StateStore:
    """Table-backed store for a database URL, in-memory otherwise."""
    if database_url:
        return TableStateStore(database_url)
    return InMemoryStateStore()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def _read_entries(request: Request, key: str) -> list[Any] | JSONResponse:
    """The ``key`` list from a JSON body, or a 400 response."""
    try:
        body = await request.json()
    except ValueError:
        logger.warning("state_api_invalid_json", path=request.url.path)
        return _error(400, "Invalid JSON body")

    entries = body.get(key) if isinstance(body, dict) else None
    if not isinstance(entries, list) or not entries:
        return _error(400, f"Body must include a non-empty {key} array")
    return entries


def create_app(store: StateStore | None = None) -> FastAPI:
    store = store if store is not None else build_store(settings.state_database_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if isinstance(store, TableStateStore):
            await store.init()
        logger.info("state_api_starting", store=type(store).__name__)
        yield
        await store.close()
        logger.info("state_api_stopped")

    app = FastAPI(title="pabridge state API", version="0.1.0", lifespan=lifespan, redirect_slashes=False)
    app.state.store = store

    @app.middleware("http")
    async def catch_unhandled(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception:
            logger.exception("state_api_unhandled_error", path=request.url.path, method=request.method)
            return _error(500, "Internal server error")

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code in (404, 405):
            return _error(404, "Not found")
        return _error(exc.status_code, str(exc.detail))

    # ── Tasks ──────────────────────────────────────────────────

    @app.get("/state/tasks")
    async def get_tasks() -> dict[str, Any]:
        return {"tasks": await store.list_tasks()}

    @app.post("/state/tasks")
    async def post_tasks(request: Request) -> Any:
        entries = await _read_entries(request, "tasks")
        if isinstance(entries, JSONResponse):
            return entries

        saved = await store.save_tasks(entries)
        logger.info("state_tasks_posted", incoming=len(entries), persisted=len(saved))
        if not saved:
            return _error(400, "No valid tasks provided")
        return {"tasks": saved}

    # ── Projects ───────────────────────────────────────────────

    @app.get("/state/projects")
    async def get_projects() -> dict[str, Any]:
        return {"projects": await store.list_projects()}

    @app.post("/state/projects")
    async def post_projects(request: Request) -> Any:
        entries = await _read_entries(request, "projects")
        if isinstance(entries, JSONResponse):
            return entries

        saved = await store.save_projects(entries)
        logger.info("state_projects_posted", incoming=len(entries), persisted=len(saved))
        if not saved:
            return _error(400, "No valid projects provided")
        return {"projects": saved}

    return app


def main() -> None:
    """Run the state API under uvicorn."""
    import uvicorn

    configure_logging(settings.log_level, settings.env)
    uvicorn.run(create_app(), host="0.0.0.0", port=settings.state_api_port, log_config=None)


if __name__ == "__main__":
    main()
