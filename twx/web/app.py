"""FastAPI application for the TWX asset exchange API."""

from __future__ import annotations

from contextlib import asynccontextmanager
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware

from twx.core.logging import configure_logging
from twx.db.connection import close_db
from twx.errors import TwxError
from twx.web.routes import elements, health, inspections, projects

# Initialize structured logging
configure_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_db()


app = FastAPI(
    title="TWX Asset Exchange",
    description="Temporary-works asset registry and project transfer workflow",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


# Request Logging Middleware
class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        structlog.contextvars.clear_contextvars()

        request_id = request.headers.get("X-Request-ID", str(uuid4()))
        structlog.contextvars.bind_contextvars(request_id=request_id)

        logger.info(
            "request_started",
            method=request.method,
            path=request.url.path,
            client_ip=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)

            logger.info(
                "request_completed",
                status_code=response.status_code,
            )
            response.headers["X-Request-ID"] = request_id
            return response

        except Exception as exc:
            logger.error("request_failed", error=str(exc))
            raise


app.add_middleware(RequestLoggingMiddleware)

# Prometheus Metrics
Instrumentator().instrument(app).expose(app)


# Exception Handlers
@app.exception_handler(TwxError)
async def twx_error_handler(request: Request, exc: TwxError):
    """Render domain errors with their status and payload."""
    if exc.status_code >= 500:
        logger.error("request_error", error_type=type(exc).__name__, error=exc.message)
    else:
        logger.info("request_rejected", error_type=type(exc).__name__, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    """A uniqueness invariant rejected a concurrent write; the caller may retry."""
    logger.warning("integrity_conflict", error=str(exc.orig))
    return JSONResponse(
        status_code=409,
        content={"detail": "Conflicting concurrent update; retry the request"},
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("database_error", error=str(exc), exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("unhandled_error", error=str(exc), exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# Include Routers
app.include_router(health.router)
app.include_router(elements.router)
app.include_router(inspections.router)
app.include_router(projects.router)
