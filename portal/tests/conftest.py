"""Fixtures for portal router tests: a seeded SQLite database and users."""

from __future__ import annotations

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

import taskflow.database
from portal.auth import PortalUser
from taskflow.config import get_settings
from taskflow.models import Base, Project, ProjectMember, ProjectTask, User

# user id -> system role
USERS = {
    1: "admin",
    2: "manager",
    3: "lead",
    5: "member",
    7: "member",
    11: "member",
}


@pytest.fixture
def jwt_secret(monkeypatch):
    """Configure a portal signing secret for the duration of a test."""
    monkeypatch.setenv("PORTAL_JWT_SECRET", "test-secret")
    get_settings.cache_clear()
    yield "test-secret"
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def db(tmp_path, monkeypatch):
    """Point the portal at a seeded SQLite database.

    Project 1 has members 5 and 7; project 2 has member 11. Task 1 in
    project 1 was created by 5 and is assigned to 7.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'portal.db'}", poolclass=NullPool
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False)
    async with factory() as session:
        session.add_all([
            User(id=uid, email=f"user{uid}@example.com", first_name="User", last_name=str(uid), role=role)
            for uid, role in USERS.items()
        ])
        await session.flush()
        session.add_all([
            Project(id=1, title="E-Commerce Platform", created_by=2),
            Project(id=2, title="Mobile App", created_by=2),
        ])
        await session.flush()
        session.add_all([
            ProjectMember(project_id=1, user_id=5, project_role="developer"),
            ProjectMember(project_id=1, user_id=7, project_role="tester"),
            ProjectMember(project_id=2, user_id=11, project_role="developer"),
            ProjectTask(id=1, project_id=1, title="Checkout flow", created_by=5, assigned_to=7),
        ])
        await session.commit()

    monkeypatch.setattr(taskflow.database, "_session_factory", factory)
    yield factory
    await engine.dispose()


@pytest.fixture
def as_user():
    """Build the PortalUser that ``require_auth`` would inject."""

    def _make(user_id: int) -> PortalUser:
        return PortalUser(user_id=user_id, role=USERS[user_id], email=f"user{user_id}@example.com")

    return _make
