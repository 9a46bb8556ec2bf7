"""FastAPI backend for the trigger editor and agent automation."""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request

from triggerbrew.dashboard.routers import agents as agents_router
from triggerbrew.dashboard.routers import conditions as conditions_router
from triggerbrew.dashboard.routers import tasks as tasks_router
from triggerbrew.dashboard.routers._deps import set_orchestrator

if TYPE_CHECKING:
    from triggerbrew.main import Orchestrator

_logger = logging.getLogger(__name__)

# Reachable without a token even when auth is enabled.
_PUBLIC_PATHS = {"/api/health", "/docs", "/redoc", "/openapi.json"}


def create_app(orchestrator: Orchestrator | None = None) -> FastAPI:
    app = FastAPI(
        title="TriggerBrew",
        description="Agent trigger conditions for task boards: logic validation, "
                    "condition editing, and trigger dispatch.",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    cors_origins = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ORIGINS", "http://localhost:8430,http://localhost:3000"
        ).split(",")
        if origin.strip()
    ]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept"],
    )

    auth = orchestrator.config.auth if orchestrator is not None else None
    if auth is None or not auth.enabled:
        _logger.info("API authentication is disabled")

    @app.middleware("http")
    async def auth_middleware(request: Request, call_next):
        if (
            auth is None
            or not auth.enabled
            or request.url.path in _PUBLIC_PATHS
            or request.method == "OPTIONS"
        ):
            return await call_next(request)

        header = request.headers.get("Authorization", "")
        if not header.startswith("Bearer "):
            return JSONResponse(
                {"error": "Missing or invalid Authorization header"}, status_code=401
            )
        if header[7:] not in auth.tokens:
            return JSONResponse({"error": "Invalid token"}, status_code=401)
        return await call_next(request)

    set_orchestrator(orchestrator)

    app.include_router(tasks_router.router, tags=["Tasks"])
    app.include_router(conditions_router.router, tags=["Conditions"])
    app.include_router(agents_router.router, tags=["Agents"])
    return app
