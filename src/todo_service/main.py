from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import RequestResponseEndpoint
from starlette.responses import Response

from .db import TodoStore
from .lifecycle import Supervisor
from .ratelimit import FixedWindowRateLimiter, RateLimitMiddleware
from .routers import todos as todos_router
from .schemas import CLIENT_ERROR_TYPES
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)
access_logger = logging.getLogger("todo_service.access")

INTERNAL_ERROR = "Internal server error"
INVALID_BODY = "Invalid request body"

openapi_tags = [
    {"name": "health", "description": "Service liveness endpoint."},
    {"name": "todos", "description": "CRUD operations for Todo items."},
]


# PUBLIC_INTERFACE
def create_app(
    settings: Optional[Settings] = None,
    store: Optional[TodoStore] = None,
    supervisor: Optional[Supervisor] = None,
) -> FastAPI:
    """
    Build the Todo service application.

    Args:
        settings: Settings to use; loaded from the environment when omitted.
        store: Storage client to serve from. When omitted one is created from
            ``settings`` at startup. Either way the application closes it on shutdown.
        supervisor: Receives fatal pool errors. ``server.main`` attaches it to the
            running server so that a fatal error stops it.
    """
    settings = settings or get_settings()
    supervisor = supervisor or Supervisor()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if app.state.store is None:
            app.state.store = TodoStore.from_settings(settings, on_fatal=supervisor.fail)
        if settings.db_create_schema:
            app.state.store.create_schema()
        logger.info("Todo service ready (%s mode)", settings.environment)
        yield
        logger.info("Closing database pool")
        app.state.store.close()

    app = FastAPI(
        title="Todo Service",
        description="Minimal CRUD service for todos backed by a relational table.",
        version="0.1.0",
        openapi_tags=openapi_tags,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.supervisor = supervisor

    if settings.rate_limit_enabled:
        app.add_middleware(
            RateLimitMiddleware,
            limiter=FixedWindowRateLimiter(settings.rate_limit_max, settings.rate_limit_window),
        )

    # Only the configured client may call cross-origin; without one, no origin is allowed.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.client_url] if settings.client_url else [],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        access_logger.info(
            "%s %s host=%s status=%d",
            request.method,
            request.url.path,
            request.headers.get("host", "-"),
            response.status_code,
        )
        return response

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """
        Render every HTTP error as {"error": <detail>}.
        """
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """
        Map request validation failures onto the service's error contract.

        - Title / completed problems carry their own message: 400.
        - Otherwise an invalid path identifier cannot name a stored todo: 404.
        - Anything else (missing or malformed JSON body): 400 with a generic message.
        """
        errors = exc.errors()
        message = next(
            (err["msg"] for err in errors if err.get("type") in CLIENT_ERROR_TYPES),
            None,
        )
        if message is not None:
            return JSONResponse(status_code=400, content={"error": message})

        if any(tuple(err.get("loc", ()))[:1] == ("path",) for err in errors):
            return JSONResponse(status_code=404, content={"error": todos_router.TODO_NOT_FOUND})

        return JSONResponse(status_code=400, content={"error": INVALID_BODY})

    @app.exception_handler(SQLAlchemyError)
    async def storage_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        """
        Storage failures are logged in full and reported to the caller generically.
        """
        logger.error(
            "Storage error during %s %s",
            request.method,
            request.url.path,
            exc_info=(type(exc), exc, exc.__traceback__),
        )
        return JSONResponse(status_code=500, content={"error": INTERNAL_ERROR})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Any other failure keeps the same generic body.
        """
        logger.error(
            "Unhandled error during %s %s",
            request.method,
            request.url.path,
            exc_info=(type(exc), exc, exc.__traceback__),
        )
        return JSONResponse(status_code=500, content={"error": INTERNAL_ERROR})

    # PUBLIC_INTERFACE
    @app.get("/health", summary="Health Check", tags=["health"])
    def health_check():
        """
        Liveness probe. Never touches storage.

        Returns:
            A JSON object indicating service health.
        """
        return {"status": "ok"}

    app.include_router(todos_router.router)
    return app


app = create_app()
