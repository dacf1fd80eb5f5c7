"""
FastAPI application for studypath.

Provides a REST API for:
- Creating, listing, loading and deleting learning sessions
- Opening sub-modules and submitting exercise answers
- Draft answers (scratchpad) and the sub-module chat assistant

The API holds no learning state of its own; every request is scoped by
session id and delegated to the SessionOrchestrator.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from config import get_settings
from studypath import __version__
from studypath.core.errors import (
    GenerationFailed,
    InvalidTransition,
    PersistenceFailed,
    SessionNotFound,
)
from studypath.core.logging import configure_logging
from studypath.path.generator import create_generator
from studypath.path.orchestrator import SessionOrchestrator
from studypath.path.repository import SessionRepository, create_store

from .routers import sessions_router


def _build_orchestrator() -> SessionOrchestrator:
    settings = get_settings()
    return SessionOrchestrator(SessionRepository(create_store(settings)), create_generator(settings))


def _error_body(message: str, session=None) -> dict:
    body: dict = {"detail": message}
    if session is not None:
        body["session"] = session.to_dict()
    return body


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(SessionNotFound)
    async def _not_found(request: Request, exc: SessionNotFound):
        return JSONResponse(status_code=404, content=_error_body(str(exc)))

    @app.exception_handler(InvalidTransition)
    async def _invalid(request: Request, exc: InvalidTransition):
        return JSONResponse(status_code=409, content=_error_body(exc.reason))

    @app.exception_handler(GenerationFailed)
    async def _generation(request: Request, exc: GenerationFailed):
        return JSONResponse(status_code=502, content=_error_body(str(exc), exc.session))

    @app.exception_handler(PersistenceFailed)
    async def _persistence(request: Request, exc: PersistenceFailed):
        return JSONResponse(status_code=503, content=_error_body(str(exc), exc.session))


def create_app(orchestrator: SessionOrchestrator | None = None) -> FastAPI:
    """
    Build the API application.

    Args:
        orchestrator: Pre-built orchestrator (tests). When omitted one is
            built at startup from settings.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings = get_settings()
        configure_logging(settings)

        if app.state.orchestrator is None:
            logger.info("Starting studypath service...")
            app.state.orchestrator = _build_orchestrator()
            logger.info(f"Service started on {settings.api_host}:{settings.api_port}")

        yield

        logger.info("Shutting down studypath service...")

    app = FastAPI(
        title="studypath",
        description="Learning paths that unlock module by module as the learner passes exercises.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.orchestrator = orchestrator

    # CORS middleware for local development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Restrict in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_error_handlers(app)
    app.include_router(sessions_router.router, prefix="/sessions", tags=["sessions"])

    @app.get("/health", tags=["health"])
    async def health() -> dict:
        return {"status": "ok", "version": __version__}

    return app
