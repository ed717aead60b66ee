"""Row lookups used by several routers before a permission check."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.errors import NotFound
from taskflow.models.project import Project, ProjectMember
from taskflow.models.project_task import ProjectTask


async def load_project(session: AsyncSession, project_id: int) -> Project:
    project = await session.get(Project, project_id)
    if project is None:
        raise NotFound("Project not found")
    return project


async def load_task(session: AsyncSession, task_id: int) -> ProjectTask:
    task = await session.get(ProjectTask, task_id)
    if task is None:
        raise NotFound("Task not found")
    return task


async def project_member_ids(session: AsyncSession, project_id: int) -> set[int]:
    result = await session.execute(
        select(ProjectMember.user_id).where(ProjectMember.project_id == project_id)
    )
    return set(result.scalars().all())


async def member_project_ids(session: AsyncSession, user_id: int) -> set[int]:
    """Projects in which ``user_id`` holds a membership."""
    result = await session.execute(
        select(ProjectMember.project_id).where(ProjectMember.user_id == user_id)
    )
    return set(result.scalars().all())
