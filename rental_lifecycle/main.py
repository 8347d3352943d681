# rental_lifecycle/main.py
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .errors import LifecycleError, PersistenceUnavailable
from .logging_config import configure_logging
from .middleware.request_id import RequestIDMiddleware
from .middleware.structured_logging import StructuredLoggingMiddleware
from .routers.health import router as health_router
from .routers.lifecycle import router as lifecycle_router

API_PREFIX = "/api"

log = logging.getLogger("rental_lifecycle.api")


def _cors_origins() -> list[str]:
    val = getattr(settings, "cors_allow_origins", ["*"])
    if isinstance(val, str):
        v = val.strip()
        return ["*"] if v == "*" else [x.strip() for x in v.split(",") if x.strip()]
    if isinstance(val, list) and val:
        return val
    return ["*"]


async def _lifecycle_error_handler(request: Request, exc: LifecycleError) -> JSONResponse:
    log.info("lifecycle_error", extra={"event": exc.code, "path": request.url.path, "status_code": exc.http_status})
    return JSONResponse(status_code=exc.http_status, content=exc.as_dict())


async def _persistence_error_handler(request: Request, exc: PersistenceUnavailable) -> JSONResponse:
    log.error("persistence_unavailable", exc_info=exc, extra={"path": request.url.path})
    return JSONResponse(
        status_code=PersistenceUnavailable.http_status,
        content={"error": "persistence_unavailable", "detail": "storage is temporarily unavailable"},
    )


def create_app() -> FastAPI:
    app = FastAPI(title="Rental Lifecycle Engine", version="0.1.0")

    # added last = outermost: request id is set before the request log line runs
    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(LifecycleError, _lifecycle_error_handler)
    app.add_exception_handler(PersistenceUnavailable, _persistence_error_handler)

    app.include_router(health_router, prefix=API_PREFIX)
    app.include_router(lifecycle_router, prefix=API_PREFIX)
    return app


configure_logging()
app = create_app()
