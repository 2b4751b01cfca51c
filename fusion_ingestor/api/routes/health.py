"""Health check endpoint."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ...utils.health import HealthStatus, get_health_checker

router = APIRouter()


@router.get("/health")
async def health_check() -> JSONResponse:
    """Run registered component checks; only the database is required to be healthy."""

    report = await get_health_checker().check_all(required_components=["database"])
    status_code = 503 if report.status == HealthStatus.UNHEALTHY else 200
    return JSONResponse(status_code=status_code, content=report.model_dump(mode="json"))
