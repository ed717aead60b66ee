"""Translate core outcomes into HTTP responses."""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from taskflow.errors import Forbidden, TaskflowError
from taskflow.permissions import Decision

logger = structlog.get_logger()


def raise_if_denied(decision: Decision, *, check: str, user_id: int) -> None:
    """Raise ``Forbidden`` for a denied decision."""
    if decision:
        return
    logger.info("permission_denied", check=check, user_id=user_id, reason=decision.reason)
    raise Forbidden(decision.reason or "Forbidden")


async def taskflow_error_handler(request: Request, exc: TaskflowError) -> JSONResponse:
    logger.info(
        "request_rejected",
        path=request.url.path,
        error_type=type(exc).__name__,
        status_code=exc.status_code,
        detail=exc.detail,
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TaskflowError, taskflow_error_handler)
