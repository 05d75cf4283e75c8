from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import Callable

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.observability import (
    REQUEST_ID_HEADER,
    configure_logging,
    monotonic_ms,
    new_request_id,
    request_log_fields,
    reset_request_id,
    set_request_id,
)
from api.routes import router
from core.config import get_settings
from core.db import create_schema
from core.errors import InvalidRequest, TaxonomyLookupMiss
from core.services.exercise_catalog import default_index
from core.services.generation import WorkoutGenerator
from core.services.model_client import build_model_client
from core.services.repository import SqlWorkoutRepository

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        create_schema()
        repository = SqlWorkoutRepository()
        index = repository.load_index()
        if index is None:
            index = default_index()
            logger.info("taxonomy_loaded", extra={"ctx_source": "builtin", "ctx_exercises": len(index)})
        else:
            logger.info("taxonomy_loaded", extra={"ctx_source": "database", "ctx_exercises": len(index)})

        client = build_model_client(settings)
        if client is None:
            logger.warning("No model API key configured; workouts will use rule-based plans")

        app.state.repository = repository
        app.state.index = index
        app.state.generator = WorkoutGenerator(index, client, settings)
        try:
            yield
        finally:
            if client is not None:
                await client.aclose()

    app = FastAPI(title="Training Core API", version="1.0.0", lifespan=lifespan)
    app.include_router(router)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(InvalidRequest)
    async def invalid_request_handler(request: Request, exc: InvalidRequest) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": str(exc), "errors": exc.errors})

    @app.exception_handler(TaxonomyLookupMiss)
    async def taxonomy_miss_handler(request: Request, exc: TaxonomyLookupMiss) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc), "errors": []})

    @app.middleware("http")
    async def request_context_and_logging(request: Request, call_next: Callable) -> Response:
        request_id = (request.headers.get(REQUEST_ID_HEADER) or "").strip() or new_request_id()
        token = set_request_id(request_id)
        started_ms = monotonic_ms()

        def fields(status_code: int) -> dict[str, object]:
            return request_log_fields(
                method=request.method,
                path=request.url.path,
                status_code=status_code,
                duration_ms=monotonic_ms() - started_ms,
                client_ip=getattr(request.client, "host", None),
            )

        try:
            response = await call_next(request)
        except Exception:
            logger.exception("http_request_error", extra=fields(500))
            raise
        else:
            response.headers[REQUEST_ID_HEADER] = request_id
            logger.info("http_request", extra=fields(response.status_code))
            return response
        finally:
            reset_request_id(token)

    return app


app = create_app()
