"""Project status workflow: the ordered, named statuses a project moves through.

A project's status list is never patched in place. Every configuration
change replaces the whole active list in one transaction: existing active
rows are deactivated (kept for history) and the submitted drafts are
inserted with ``order`` taken from their position in the submission.

At every successful replacement exactly one active status is the start and
exactly one is the end. Deleting a status is a soft delete and only refuses
to remove the last active status.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

import structlog
from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy import update as sa_update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskflow.errors import Conflict, Forbidden, InvalidInput, NotFound
from taskflow.models.project import Project
from taskflow.models.project_status import ProjectStatus
from taskflow.schemas.statuses import StatusDraft

logger = structlog.get_logger()

_DEFAULT_TEMPLATE: tuple[dict[str, Any], ...] = (
    {
        "name": "Planning",
        "color": "#9CA3AF",
        "description": "Initial planning phase",
        "is_start": True,
    },
    {
        "name": "In Progress",
        "color": "#3B82F6",
        "description": "Active development",
    },
    {
        "name": "Review",
        "color": "#F59E0B",
        "description": "Under review",
    },
    {
        "name": "Testing",
        "color": "#8B5CF6",
        "description": "Quality assurance testing",
    },
    {
        "name": "Completed",
        "color": "#10B981",
        "description": "Project completed",
        "is_end": True,
    },
)


def coerce_drafts(statuses: Iterable[StatusDraft | dict] | None) -> list[StatusDraft]:
    """Accept drafts or raw dicts; a malformed entry is an ``InvalidInput``."""
    drafts: list[StatusDraft] = []
    for idx, item in enumerate(statuses or []):
        if isinstance(item, StatusDraft):
            drafts.append(item)
            continue
        try:
            drafts.append(StatusDraft.model_validate(item))
        except ValidationError as e:
            raise InvalidInput(f"invalid status at position {idx}: {e.errors()[0]['msg']}") from e
    return drafts


def validate_drafts(drafts: Sequence[StatusDraft]) -> None:
    """Check the list-level rules, in order, raising on the first failure.

    Duplicate names are not checked here; the unique index on active names
    rejects them at insert time.
    """
    if not drafts:
        raise InvalidInput("at least one status required")
    if sum(1 for d in drafts if d.is_start) != 1:
        raise InvalidInput("exactly one start status required")
    if sum(1 for d in drafts if d.is_end) != 1:
        raise InvalidInput("exactly one end status required")


def _rows_for(project_id: int, drafts: Sequence[StatusDraft]) -> list[ProjectStatus]:
    return [
        ProjectStatus(
            project_id=project_id,
            name=draft.name,
            color=draft.color,
            description=draft.description,
            order=idx,
            is_start=draft.is_start,
            is_end=draft.is_end,
            is_active=True,
        )
        for idx, draft in enumerate(drafts)
    ]


class ProjectStatusWorkflow:
    """Manage the status workflow of projects."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @staticmethod
    def default_template() -> list[StatusDraft]:
        """The five-step template offered to new projects. Pure; nothing is stored."""
        return [StatusDraft(**entry) for entry in _DEFAULT_TEMPLATE]

    # ── Queries ─────────────────────────────────────────────────────────

    async def list_active_statuses(self, project_id: int) -> list[ProjectStatus]:
        """Active statuses sorted by order. Runs a fresh query on every call."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(ProjectStatus)
                .where(
                    ProjectStatus.project_id == project_id,
                    ProjectStatus.is_active.is_(True),
                )
                .order_by(ProjectStatus.order)
            )
            return list(result.scalars().all())

    async def get_status(self, status_id: int) -> ProjectStatus | None:
        """Look up a status by id, including soft-deleted ones."""
        async with self.session_factory() as session:
            return await session.get(ProjectStatus, status_id)

    # ── Mutations ───────────────────────────────────────────────────────

    async def replace_statuses(
        self,
        project_id: int,
        statuses: Iterable[StatusDraft | dict] | None,
        *,
        authorized: bool,
    ) -> list[ProjectStatus]:
        """Replace the project's active status list with ``statuses``.

        Raises ``Forbidden``, ``InvalidInput`` (empty list, start/end count),
        ``NotFound`` (unknown project) or ``Conflict`` (duplicate active
        name). On any failure nothing is changed.
        """
        if not authorized:
            raise Forbidden("Only admin and manager can configure project statuses")

        drafts = coerce_drafts(statuses)
        validate_drafts(drafts)

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    project = await session.get(Project, project_id)
                    if project is None:
                        raise NotFound(f"Project not found: {project_id}")

                    deactivated = await session.execute(
                        sa_update(ProjectStatus)
                        .where(
                            ProjectStatus.project_id == project_id,
                            ProjectStatus.is_active.is_(True),
                        )
                        .values(is_active=False)
                    )
                    rows = _rows_for(project_id, drafts)
                    session.add_all(rows)
        except IntegrityError as e:
            logger.warning(
                "project_statuses_conflict",
                project_id=project_id,
                names=[d.name for d in drafts],
                error=str(e.orig),
            )
            raise Conflict("Status names must be unique within a project") from e

        logger.info(
            "project_statuses_replaced",
            project_id=project_id,
            deactivated=deactivated.rowcount,
            inserted=len(rows),
        )
        return sorted(rows, key=lambda s: s.order)

    async def seed_statuses(
        self,
        session: AsyncSession,
        project_id: int,
        statuses: Iterable[StatusDraft | dict] | None = None,
    ) -> list[ProjectStatus]:
        """Add the initial statuses of a freshly created project.

        Runs inside the caller's transaction so the project and its workflow
        are committed together. Falls back to the default template.
        """
        drafts = coerce_drafts(statuses) if statuses else self.default_template()
        validate_drafts(drafts)
        rows = _rows_for(project_id, drafts)
        session.add_all(rows)
        return rows

    async def delete_status(
        self,
        project_id: int,
        status_id: int,
        *,
        authorized: bool,
    ) -> ProjectStatus:
        """Soft-delete one status. The remaining start/end flags are not re-checked."""
        if not authorized:
            raise Forbidden("Only admin and manager can delete project statuses")

        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    select(ProjectStatus).where(
                        ProjectStatus.id == status_id,
                        ProjectStatus.project_id == project_id,
                    )
                )
                status = result.scalar_one_or_none()
                if status is None:
                    raise NotFound("Status not found")

                count_result = await session.execute(
                    select(func.count())
                    .select_from(ProjectStatus)
                    .where(
                        ProjectStatus.project_id == project_id,
                        ProjectStatus.is_active.is_(True),
                    )
                )
                if count_result.scalar_one() <= 1:
                    raise InvalidInput("cannot delete the last status")

                status.is_active = False

        logger.info(
            "project_status_deleted",
            project_id=project_id,
            status_id=status_id,
            name=status.name,
            was_start=status.is_start,
            was_end=status.is_end,
        )
        return status
