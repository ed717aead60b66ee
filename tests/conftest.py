"""Shared test fixtures for the taskflow test suite.

Provides mock database sessions for unit tests, a throwaway SQLite
database for integration tests, and factory helpers for actors and rows.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from taskflow.models import Base, Project, ProjectMember, User
from taskflow.permissions import Actor, TaskRef


# ---------------------------------------------------------------------------
# Database mocks
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_db_session():
    """Mock async SQLAlchemy session.

    Supports the common patterns used in service code:
        session.execute(stmt) -> result
        session.get(Model, pk)
        session.add(obj) / session.add_all(objs)
        session.commit()
    """
    session = AsyncMock()
    # Default: execute returns a result with no rows
    default_result = MagicMock()
    default_result.scalar_one_or_none.return_value = None
    default_result.scalars.return_value.all.return_value = []
    session.execute = AsyncMock(return_value=default_result)
    session.get = AsyncMock(return_value=None)
    session.add = MagicMock()
    session.add_all = MagicMock()
    return session


@pytest.fixture
def mock_session_factory(mock_db_session):
    """Mock async session factory compatible with ``async with factory() as session:``."""

    @asynccontextmanager
    async def _session_ctx():
        yield mock_db_session

    factory = MagicMock(side_effect=lambda: _session_ctx())
    return factory


# ---------------------------------------------------------------------------
# SQLite database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """Session factory over a fresh SQLite file with the full schema."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'taskflow.db'}", poolclass=NullPool
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def seeded(session_factory):
    """Users 1-3 (manager, lead, member) and project 1 created by user 1.

    Returns a dict of the created ids.
    """
    async with session_factory() as session:
        session.add_all([
            User(id=1, email="manager@example.com", first_name="Mona", last_name="Grey", role="manager"),
            User(id=2, email="lead@example.com", first_name="Lee", last_name="Park", role="lead"),
            User(id=3, email="member@example.com", first_name="Max", last_name="Ruiz", role="member"),
        ])
        await session.flush()
        session.add(Project(id=1, title="E-Commerce Platform", created_by=1))
        await session.flush()
        session.add(ProjectMember(project_id=1, user_id=3, project_role="developer"))
        await session.commit()
    return {"project_id": 1, "manager_id": 1, "lead_id": 2, "member_id": 3}


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_actor():
    """Factory for creating Actor instances."""

    def _make(actor_id: int = 100, role: str = "member") -> Actor:
        return Actor(id=actor_id, system_role=role)

    return _make


@pytest.fixture
def make_task():
    """Factory for creating TaskRef instances."""

    def _make(
        task_id: int = 1,
        project_id: int = 10,
        created_by: int = 5,
        assigned_to: int | None = 7,
    ) -> TaskRef:
        return TaskRef(
            id=task_id,
            project_id=project_id,
            created_by=created_by,
            assigned_to=assigned_to,
        )

    return _make

