"""FastAPI server exposing the health endpoint."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from vitals import __version__
from vitals.api.health_routes import health_router
from vitals.config import settings
from vitals.health.engine import HealthCheckService
from vitals.health.registry import ProbeRegistry
from vitals.probes.loader import load_probes

logger = logging.getLogger(__name__)


def build_service(probes_file: str | Path | None = None) -> HealthCheckService:
    """Composition root: load the probes file, freeze the registry, wire the engine.

    Raises ConfigurationError on any probe misconfiguration.
    """
    path = Path(probes_file or settings.probes_file)
    if not path.is_absolute():
        path = Path.cwd() / path

    registry = ProbeRegistry(default_timeout=settings.probe_timeout_seconds)
    load_probes(path, registry)
    registry.freeze()

    return HealthCheckService(
        registry,
        max_concurrency=settings.max_concurrency,
        deadline=settings.query_deadline_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the health service on startup unless one was injected."""
    if getattr(app.state, "health_service", None) is None:
        # ConfigurationError propagates: the server must not start
        app.state.health_service = build_service()
        logger.info(
            "Health service ready: %d probes", len(app.state.health_service.registry),
        )

    yield


def create_app(service: HealthCheckService | None = None) -> FastAPI:
    app = FastAPI(
        title="vitals - Service Health",
        version=__version__,
        lifespan=lifespan,
    )
    if service is not None:
        app.state.health_service = service

    app.include_router(health_router, prefix="/api")

    return app


app = create_app()
