"""Liveness and database health endpoint."""

from __future__ import annotations

import structlog
from fastapi import APIRouter
from sqlalchemy import text

from taskflow.database import get_session_factory
from taskflow.schemas.common import HealthResponse

logger = structlog.get_logger()
router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Report ``ok`` when the database answers, ``degraded`` otherwise."""
    try:
        factory = get_session_factory()
        async with factory() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning("health_db_unreachable", error=str(e))
        return HealthResponse(status="degraded")
    return HealthResponse(status="ok")
