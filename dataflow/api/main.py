"""
DataFlow REST API: generic entity CRUD, filtering, search and admin routes.

The entity store is created once per application and handed to routes via
``Depends(get_store)``; nothing here holds a module-level connection.
"""

import time
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from .airflow import router as airflow_router
from .deps import get_store
from .gitlab import router as gitlab_router
from .limits import RateLimiter, limit_body_size, rate_limit_middleware
from .schemas import BatchCreateRequest, FilterRequest, PurgeLogsRequest, SearchRequest
from ..core import config, dao
from ..core.db import EntityStore
from ..core.errors import DataFlowError, MissingTable
from ..core.identifiers import entity_name_to_table
from ..util.logging import logger

# Search-backed functions and the entity kind each one searches
SEARCH_FUNCTIONS = {
    "searchPipelines": "pipeline",
    "searchConnections": "connection",
    "searchActivityLogs": "activity_log",
}

# Functions whose backing services do not exist in this deployment
STUB_FUNCTIONS = {
    "fetchVaultCredentials": {"error": "Vault not configured in local environment"},
    "generateLineage": {"error": "Lineage feature has been removed"},
    "syncAirflowDagsAsync": {
        "status": "sync_not_available",
        "message": "Airflow sync not configured in local environment",
    },
    "triggerDependentPipelines": {"triggered": []},
}

router = APIRouter()


@router.get("/health")
def health_check_endpoint(request: Request, store: EntityStore = Depends(get_store)):
    """Check that the API and its store are up."""
    db_health = store.health_check()
    body = {
        "status": "ok" if db_health else "degraded",
        "uptime": int(time.monotonic() - request.app.state.started_at),
        "database": "connected" if db_health else "disconnected",
        "timestamp": dao.utcnow(),
    }
    if not db_health:
        return JSONResponse(status_code=503, content=body)
    return body


@router.get("/auth/me")
def current_user():
    return {**config.get_mock_user(), "is_authenticated": True}


@router.post("/auth/logout")
def logout():
    return {"success": True}


@router.get("/apps/public/prod/public-settings/by-id/{app_id}")
def public_settings(app_id: str):
    return {"appId": app_id, "name": "DataFlow", "requiresAuth": False, "status": "active"}


@router.get("/entities/{entity_name}")
def list_entities(entity_name: str, sort: Optional[str] = None, limit: Optional[str] = None,
                  skip: Optional[str] = None, cursor: Optional[str] = None,
                  paginate: Optional[str] = None, store: EntityStore = Depends(get_store)):
    """
    List records of one entity kind.

    Offset mode by default; cursor mode when a non-empty ``cursor`` is given or
    ``paginate=cursor`` asks for the first cursor page. A table that does not
    exist yet lists as empty, but an unknown entity name is still rejected.
    """
    entity_name_to_table(entity_name)
    cursor_mode = bool(cursor) or paginate == "cursor"
    try:
        if cursor_mode:
            return dao.list_records_by_cursor(store, entity_name, cursor=cursor, limit=limit)
        return dao.list_records(store, entity_name, sort=sort, limit=limit, skip=skip)
    except MissingTable:
        if cursor_mode:
            return {"items": [], "nextCursor": None, "hasMore": False}
        return []


@router.post("/entities/{entity_name}/filter")
def filter_entities(entity_name: str, req: FilterRequest, store: EntityStore = Depends(get_store)):
    entity_name_to_table(entity_name)
    try:
        return dao.filter_records(store, entity_name, query=req.query, sort=req.sort,
                                  limit=req.limit, skip=req.skip)
    except MissingTable:
        return []


@router.post("/entities/{entity_name}/batch", status_code=201)
def batch_create_entities(entity_name: str, req: BatchCreateRequest,
                          store: EntityStore = Depends(get_store)):
    return dao.create_records(store, entity_name, req.items)


@router.get("/entities/{entity_name}/{record_id}")
def get_entity(entity_name: str, record_id: str, store: EntityStore = Depends(get_store)):
    return dao.get_record(store, entity_name, record_id)


@router.post("/entities/{entity_name}", status_code=201)
def create_entity(entity_name: str, payload: Dict[str, Any] = Body(...),
                  store: EntityStore = Depends(get_store)):
    return dao.create_record(store, entity_name, payload)


@router.put("/entities/{entity_name}/{record_id}")
def update_entity(entity_name: str, record_id: str, payload: Dict[str, Any] = Body(...),
                  store: EntityStore = Depends(get_store)):
    return dao.update_record(store, entity_name, record_id, payload)


@router.delete("/entities/{entity_name}/{record_id}")
def delete_entity(entity_name: str, record_id: str, store: EntityStore = Depends(get_store)):
    dao.delete_record(store, entity_name, record_id)
    return {"success": True}


@router.post("/functions/{function_name}")
def invoke_function(function_name: str, req: Optional[SearchRequest] = None,
                    store: EntityStore = Depends(get_store)):
    """Named server-side functions; only the search functions touch the store."""
    if function_name in STUB_FUNCTIONS:
        return STUB_FUNCTIONS[function_name]

    kind = SEARCH_FUNCTIONS.get(function_name)
    if kind is None:
        return JSONResponse(status_code=404, content={"error": f"Function '{function_name}' not found"})

    req = req or SearchRequest()
    items = dao.search_records(store, entity_name_to_table(kind), req.searchTerm,
                               req.filters, req.limit)
    if kind == "activity_log":
        return {"items": items, "nextCursor": None, "hasMore": False}
    return items


@router.post("/admin/purge-logs")
def purge_logs(req: Optional[PurgeLogsRequest] = None, store: EntityStore = Depends(get_store)):
    deleted = dao.purge_activity_logs(store, req.days if req else None)
    return {"deleted": deleted}


@router.get("/admin/data-model")
def data_model(store: EntityStore = Depends(get_store)):
    return dao.describe_data_model(store)


async def dataflow_error_handler(request: Request, exc: DataFlowError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        problems.append(f"{location}: {err.get('msg')}" if location else err.get("msg"))
    return JSONResponse(status_code=400, content={"error": "; ".join(problems) or "Invalid request"})


def create_app(store: Optional[EntityStore] = None) -> FastAPI:
    """
    Build the application around an entity store.

    With no store given, one is opened on ``config.DB_PATH`` at startup.
    The store is closed on shutdown either way.
    """
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.store is None:
            app.state.store = EntityStore(config.DB_PATH)
        for issue in config.validate_config():
            logger.warning(f"Configuration issue: {issue}")
        logger.info(f"DataFlow API {config.VERSION} started ({config.DATAFLOW_ENV})")
        yield
        app.state.store.close()

    app = FastAPI(
        title="DataFlow API",
        version=config.VERSION,
        description="Entity store, Airflow proxy and Git deployment for data-pipeline definitions",
        docs_url="/docs" if config.debug_enabled() else None,
        redoc_url="/redoc" if config.debug_enabled() else None,
        lifespan=lifespan,
    )
    app.state.store = store
    app.state.started_at = time.monotonic()

    app.state.limiter = RateLimiter()
    app.middleware("http")(limit_body_size)
    app.middleware("http")(rate_limit_middleware(app.state.limiter))

    if config.LOG_REQUESTS:
        @app.middleware("http")
        async def log_requests(request: Request, call_next):
            start = time.monotonic()
            response = await call_next(request)
            logger.log_request(request.method, request.url.path, response.status_code,
                               (time.monotonic() - start) * 1000)
            return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in config.CORS_ORIGIN.split(",")],
        allow_credentials=config.CORS_ORIGIN != "*",
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=config.GZIP_MIN_SIZE)

    app.add_exception_handler(DataFlowError, dataflow_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.include_router(router, prefix=config.API_PREFIX)
    app.include_router(airflow_router, prefix=f"{config.API_PREFIX}/airflow")
    app.include_router(gitlab_router, prefix=f"{config.API_PREFIX}/gitlab")
    return app


app = create_app()
