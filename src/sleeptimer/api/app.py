"""HTTP API -- a thin mapping from routes onto a :class:`TimerEngine`."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

import sleeptimer
from sleeptimer.core.platform import get_platform
from sleeptimer.core.timer import (
    DEFAULT_MINUTES,
    InvalidDurationError,
    TimerEngine,
    validate_minutes,
)

logger = logging.getLogger(__name__)


class StartTimerRequest(BaseModel):
    """Body of ``POST /api/start-timer``."""

    minutes: float | None = None


def _error(
    status_code: int, message: str, headers: dict[str, str] | None = None
) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


def get_engine(request: Request) -> TimerEngine:
    """Dependency returning the engine this app was built around."""
    return request.app.state.engine


def create_app(engine: TimerEngine) -> FastAPI:
    """Create the FastAPI application serving *engine*."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Sleep timer API ready (platform: %s)", get_platform())
        yield
        await app.state.engine.close()

    app = FastAPI(title="Sleep Timer API", version=sleeptimer.__version__, lifespan=lifespan)
    app.state.engine = engine

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(InvalidDurationError)
    async def invalid_duration(request: Request, exc: InvalidDurationError) -> JSONResponse:
        return _error(400, str(exc))

    @app.exception_handler(RequestValidationError)
    async def invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error(400, "Request body must be JSON with a numeric 'minutes' field")

    @app.exception_handler(Exception)
    async def internal_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error("API error on %s %s", request.method, request.url.path, exc_info=exc)
        # Sent from outside CORSMiddleware, so the header is added here.
        return _error(500, "Internal server error", {"Access-Control-Allow-Origin": "*"})

    @app.get("/api/status")
    async def status(engine: TimerEngine = Depends(get_engine)) -> dict:
        return {**engine.get_state().to_dict(), "platform": get_platform()}

    @app.post("/api/start-timer")
    async def start_timer(
        body: StartTimerRequest | None = None, engine: TimerEngine = Depends(get_engine)
    ) -> dict:
        requested = body.minutes if body is not None else None
        minutes = validate_minutes(requested or DEFAULT_MINUTES)
        return engine.start(minutes).to_dict()

    @app.post("/api/cancel-timer")
    async def cancel_timer(engine: TimerEngine = Depends(get_engine)) -> dict:
        return engine.cancel().to_dict()

    @app.api_route("/api/{path:path}", methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
    async def not_found(path: str) -> JSONResponse:
        return _error(404, "Not found")

    return app
