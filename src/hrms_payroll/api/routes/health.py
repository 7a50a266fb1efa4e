"""Health check endpoints."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import func, select, text

from hrms_payroll.api.dependencies import DbSession
from hrms_payroll.config import get_settings
from hrms_payroll.models import PayrollRun
from hrms_payroll.services.payroll_run_service import PayrollRunService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime
    database: str
    version: str
    stuck_runs: int | None = None


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
)
async def health_check(db: DbSession) -> HealthResponse:
    """Check database health and count runs left in processing."""
    db_status = "unhealthy"
    stuck = None
    try:
        await db.execute(text("SELECT 1"))
        db_status = "healthy"
        stuck = len(await PayrollRunService(db).find_stuck_runs())
    except Exception:
        logger.exception("Database health check failed")

    overall = "healthy" if db_status == "healthy" and not stuck else "degraded"
    return HealthResponse(
        status=overall,
        timestamp=datetime.now(timezone.utc),
        database=db_status,
        version=get_settings().engine_version,
        stuck_runs=stuck,
    )


@router.get("/ready", status_code=status.HTTP_200_OK)
async def readiness_check(db: DbSession):
    """Ready once the payroll schema answers queries."""
    try:
        await db.scalar(select(func.count()).select_from(PayrollRun))
    except Exception:
        logger.exception("Payroll schema not reachable")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready"},
        )
    return {"status": "ready"}


@router.get("/live", status_code=status.HTTP_200_OK)
async def liveness_check() -> dict[str, str]:
    """Liveness check for container orchestration."""
    return {"status": "alive"}
