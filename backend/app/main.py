from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import ORJSONResponse

from app.api.routes.overview import router as overview_router
from app.api.routes.reports import router as reports_router
from app.core.config import settings
from app.core.errors import StoreError
from app.core.logging import configure_logging

logger = logging.getLogger("app")


# -------------------------
# Response helpers
# -------------------------
def ok(data: Any = None, meta: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {"success": True, "data": data, "error": None, "meta": meta or {}}


def fail(
    code: str,
    message: str,
    details: Optional[Any] = None,
    meta: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    return {
        "success": False,
        "data": None,
        "error": {"code": code, "message": message, "details": details},
        "meta": meta or {},
    }


# -------------------------
# App factory
# -------------------------
app = FastAPI(
    title="Usage Dashboard API",
    version="0.1.0",
    default_response_class=ORJSONResponse,
)


# -------------------------
# Middleware
# -------------------------
app.add_middleware(GZipMiddleware, minimum_size=1024)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request-id + timing
@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    start = time.perf_counter()

    response = await call_next(request)

    elapsed_ms = (time.perf_counter() - start) * 1000
    response.headers["x-request-id"] = request_id
    response.headers["x-response-ms"] = f"{elapsed_ms:.2f}"
    logger.debug(
        "%s %s status=%d ms=%.2f request_id=%s",
        request.method, request.url.path, response.status_code, elapsed_ms, request_id,
    )
    return response


# -------------------------
# Routes
# -------------------------
@app.get("/health", response_class=ORJSONResponse)
async def health(request: Request):
    # Used by docker/k8s/reverse proxies; cache stats are cheap to read.
    executor = getattr(request.app.state, "executor", None)
    cache = executor.cache.stats() if executor is not None and executor.cache is not None else None
    return ok({"status": "ok", "env": settings.ENV, "cache": cache})


app.include_router(reports_router, tags=["reports"])
app.include_router(overview_router, tags=["overview"])


# -------------------------
# Error handling
# -------------------------
@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    # Driver detail was logged by the executor; clients get a generic message.
    logger.error("Store failure on %s %s", request.method, request.url.path)
    return ORJSONResponse(
        status_code=500,
        content=fail(code="STORE_ERROR", message="Failed to fetch data from the database."),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)

    # Show minimal debug info only in dev
    details = None
    if settings.ENV == "dev":
        details = {"type": exc.__class__.__name__, "message": str(exc)}

    return ORJSONResponse(
        status_code=500,
        content=fail(
            code="INTERNAL_ERROR",
            message="An unexpected error occurred.",
            details=details,
        ),
    )


# -------------------------
# Startup / shutdown
# -------------------------
@app.on_event("startup")
async def on_startup():
    configure_logging(settings.LOG_LEVEL)

    # Imported here so importing the app (e.g. in tests) has no DB side effects.
    from app.db.session import AsyncSessionLocal, init_db, masked_url
    from app.services.cache import QueryCache
    from app.services.domains import load_sanctioned_domains
    from app.services.executor import QueryExecutor

    await init_db()

    cache = QueryCache(ttl_seconds=settings.CACHE_TTL_SECONDS, max_entries=settings.CACHE_MAX_ENTRIES)
    app.state.executor = QueryExecutor(AsyncSessionLocal, cache=cache)
    app.state.domains = load_sanctioned_domains(settings.SANCTIONED_DOMAINS_PATH)

    logger.info(
        "Dashboard ready (db=%s, sanctioned_domains=%d, cache_ttl=%.0fs)",
        masked_url(settings.DATABASE_URL),
        len(app.state.domains.suffixes),
        settings.CACHE_TTL_SECONDS,
    )
    if not settings.jira_enabled:
        logger.info("JIRA sync not configured; /api/cap-resets-jira serves whatever jira_issues holds.")


@app.on_event("shutdown")
async def on_shutdown():
    from app.db.session import engine

    await engine.dispose()

