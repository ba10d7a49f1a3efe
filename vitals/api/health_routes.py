"""API route for the aggregated health report.

Endpoints:
  GET /api/health  — run all probes (or those matching ?tag=...) and report
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from vitals.health.engine import HealthCheckService
from vitals.health.formatting import http_status_for, report_to_dict

logger = logging.getLogger(__name__)

health_router = APIRouter()


# ── Pydantic models (OpenAPI schema of the body) ─────────────────────────────


class HealthEntryBody(BaseModel):
    name: str
    status: str
    duration: str
    description: str | None = None
    data: dict[str, Any] = {}
    tags: list[str] = []


class HealthReportBody(BaseModel):
    status: str
    totalDuration: str
    entries: list[HealthEntryBody]


# ── Endpoint ─────────────────────────────────────────────────────────────────


@health_router.get(
    "/health",
    response_model=HealthReportBody,
    responses={503: {"model": HealthReportBody, "description": "Degraded or Unhealthy"}},
)
async def get_health(
    request: Request,
    tag: list[str] | None = Query(default=None),
) -> JSONResponse:
    """Aggregated health: 200 when Healthy, 503 when Degraded or Unhealthy."""
    logger.info("Health check requested%s", f" (tags={tag})" if tag else "")

    service: HealthCheckService = request.app.state.health_service
    report = await service.check_health(tag)

    return JSONResponse(status_code=http_status_for(report), content=report_to_dict(report))
