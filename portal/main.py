"""Web portal: FastAPI app exposing the project tracking API."""

from __future__ import annotations

import logging

import structlog
from fastapi import FastAPI

from portal.errors import register_error_handlers
from portal.routers import health, project_statuses, projects, tasks, users
from taskflow.config import get_settings
from taskflow.database import dispose_engine

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        logging.getLevelName(get_settings().log_level.upper())
    ),
)

logger = structlog.get_logger()

app = FastAPI(title="Taskflow Portal", version="1.0.0")

register_error_handlers(app)

# --------------- Routers ---------------

app.include_router(health.router)
app.include_router(projects.router)
app.include_router(tasks.router)
app.include_router(project_statuses.router)
app.include_router(users.router)


@app.on_event("startup")
async def startup() -> None:
    logger.info("portal_startup_complete")


@app.on_event("shutdown")
async def shutdown() -> None:
    await dispose_engine()
