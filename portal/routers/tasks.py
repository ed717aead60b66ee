"""Task, dependency, comment and task attachment endpoints."""

from __future__ import annotations

from datetime import date

import structlog
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel, Field
from sqlalchemy import delete as sa_delete
from sqlalchemy import select
from sqlalchemy.orm import undefer

from portal.auth import PortalUser, require_auth
from portal.errors import raise_if_denied
from portal.services.attachments import content_disposition, format_attachment, read_upload
from portal.services.lookups import load_project, load_task, member_project_ids
from taskflow.database import get_session_factory
from taskflow.errors import Conflict, InvalidInput, NotFound
from taskflow.models.attachment import Attachment
from taskflow.models.project_task import ProjectTask
from taskflow.models.task_comment import TaskComment
from taskflow.models.task_dependency import TaskDependency
from taskflow.permissions import (
    AttachmentRef,
    CommentRef,
    TaskRef,
    can_delete_attachment,
    can_delete_comment,
    can_edit_comment,
    can_upload_task_attachment,
    plan_task_update,
    task_visibility_scope,
)

logger = structlog.get_logger()
router = APIRouter(prefix="/api/tasks", tags=["tasks"])

# Fields where an empty value means "leave unchanged"
_SKIP_IF_EMPTY = frozenset({"title", "priority", "status"})
# NOT NULL columns; an explicit null also means "leave unchanged"
_SKIP_IF_NULL = frozenset({"complexity"})


# --------------- Request schemas ---------------


class CreateTaskRequest(BaseModel):
    project_id: int
    title: str
    description: str | None = None
    priority: str = "medium"
    status: str = "todo"
    complexity: int = Field(default=3, ge=1, le=5)
    due_date: date | None = None
    estimated_hours: float | None = None
    assigned_to: int | None = None
    parent_task_id: int | None = None


class UpdateTaskRequest(BaseModel):
    title: str | None = None
    description: str | None = None
    priority: str | None = None
    status: str | None = None
    complexity: int | None = Field(default=None, ge=1, le=5)
    due_date: date | None = None
    estimated_hours: float | None = None
    assigned_to: int | None = None


class CommentRequest(BaseModel):
    comment: str


class DependencyRequest(BaseModel):
    depends_on_task_id: int


class UrlAttachmentRequest(BaseModel):
    url: str
    file_name: str | None = None
    description: str | None = None


def _format_task(t: ProjectTask) -> dict:
    return {
        "id": t.id,
        "project_id": t.project_id,
        "title": t.title,
        "description": t.description,
        "priority": t.priority,
        "status": t.status,
        "complexity": t.complexity,
        "due_date": t.due_date.isoformat() if t.due_date else None,
        "estimated_hours": t.estimated_hours,
        "assigned_to": t.assigned_to,
        "created_by": t.created_by,
        "parent_task_id": t.parent_task_id,
        "created_at": t.created_at.isoformat() if t.created_at else None,
        "updated_at": t.updated_at.isoformat() if t.updated_at else None,
    }


def _format_comment(c: TaskComment) -> dict:
    return {
        "id": c.id,
        "task_id": c.task_id,
        "user_id": c.user_id,
        "comment": c.comment,
        "created_at": c.created_at.isoformat() if c.created_at else None,
        "updated_at": c.updated_at.isoformat() if c.updated_at else None,
    }


def _format_dependency(d: TaskDependency, depends_on: ProjectTask | None = None) -> dict:
    out = {
        "id": d.id,
        "task_id": d.task_id,
        "depends_on_task_id": d.depends_on_task_id,
        "created_at": d.created_at.isoformat() if d.created_at else None,
    }
    if depends_on is not None:
        out.update(depends_on_title=depends_on.title, depends_on_status=depends_on.status)
    return out


# --------------- Task endpoints ---------------


@router.get("")
async def list_tasks(
    project_id: int | None = Query(None),
    assigned_to: int | None = Query(None),
    status: str | None = Query(None),
    priority: str | None = Query(None),
    user: PortalUser = Depends(require_auth),
) -> dict:
    """List tasks visible to the caller.

    Leads and members only see tasks of projects they belong to; asking for
    another project returns an empty list.
    """
    factory = get_session_factory()
    async with factory() as session:
        scope = task_visibility_scope(
            user.actor, await member_project_ids(session, user.user_id)
        )
        query = select(ProjectTask).order_by(ProjectTask.created_at.desc())
        if scope is not None:
            query = query.where(ProjectTask.project_id.in_(scope))
        if project_id is not None:
            query = query.where(ProjectTask.project_id == project_id)
        if assigned_to is not None:
            query = query.where(ProjectTask.assigned_to == assigned_to)
        if status:
            query = query.where(ProjectTask.status == status)
        if priority:
            query = query.where(ProjectTask.priority == priority)
        tasks = (await session.execute(query)).scalars().all()

    return {"tasks": [_format_task(t) for t in tasks]}


@router.post("", status_code=201)
async def create_task(
    body: CreateTaskRequest,
    user: PortalUser = Depends(require_auth),
) -> dict:
    factory = get_session_factory()
    async with factory() as session:
        async with session.begin():
            await load_project(session, body.project_id)
            if body.parent_task_id is not None:
                parent = await load_task(session, body.parent_task_id)
                if parent.project_id != body.project_id:
                    raise InvalidInput("Parent task belongs to a different project")
            task = ProjectTask(**body.model_dump(), created_by=user.user_id)
            session.add(task)

    logger.info("task_created", task_id=task.id, project_id=task.project_id)
    return {"message": "Task created successfully", "task": _format_task(task)}


@router.get("/{task_id}")
async def get_task(
    task_id: int,
    user: PortalUser = Depends(require_auth),
) -> dict:
    """Task detail with subtasks, dependencies and attachment metadata."""
    factory = get_session_factory()
    async with factory() as session:
        task = await load_task(session, task_id)
        subtasks = (
            await session.execute(
                select(ProjectTask).where(ProjectTask.parent_task_id == task_id)
            )
        ).scalars().all()
        attachments = (
            await session.execute(select(Attachment).where(Attachment.task_id == task_id))
        ).scalars().all()
        dependencies = (
            await session.execute(
                select(TaskDependency, ProjectTask)
                .join(ProjectTask, TaskDependency.depends_on_task_id == ProjectTask.id)
                .where(TaskDependency.task_id == task_id)
            )
        ).all()

    return {
        "task": {
            **_format_task(task),
            "subtasks": [_format_task(s) for s in subtasks],
            "attachments": [format_attachment(a) for a in attachments],
            "dependencies": [_format_dependency(d, t) for d, t in dependencies],
        }
    }


@router.patch("/{task_id}")
async def update_task(
    task_id: int,
    body: UpdateTaskRequest,
    user: PortalUser = Depends(require_auth),
) -> dict:
    """Update a task.

    A denied reassignment drops ``assigned_to`` from the update while the
    other fields still apply; the response reports it under
    ``reassignment_denied``.
    """
    requested = {
        k: v
        for k, v in body.model_dump(exclude_unset=True).items()
        if not (k in _SKIP_IF_EMPTY and not v) and not (k in _SKIP_IF_NULL and v is None)
    }

    factory = get_session_factory()
    async with factory() as session:
        async with session.begin():
            task = await load_task(session, task_id)
            plan = plan_task_update(user.actor, TaskRef.from_model(task), requested)
            raise_if_denied(plan.decision, check="edit_task", user_id=user.user_id)
            for field, value in plan.changes.items():
                setattr(task, field, value)

    response: dict = {"message": "Task updated successfully", "task": _format_task(task)}
    if plan.reassignment_denied:
        logger.info(
            "task_reassignment_denied",
            task_id=task_id,
            user_id=user.user_id,
            requested_assignee=requested.get("assigned_to"),
        )
        response["reassignment_denied"] = plan.reassignment.reason
    return response


@router.delete("/{task_id}")
async def delete_task(
    task_id: int,
    user: PortalUser = Depends(require_auth),
) -> dict:
    factory = get_session_factory()
    async with factory() as session:
        async with session.begin():
            task = await load_task(session, task_id)
            await session.delete(task)

    logger.info("task_deleted", task_id=task_id, user_id=user.user_id)
    return {"message": "Task deleted successfully"}


# --------------- Dependencies ---------------


@router.post("/{task_id}/dependencies", status_code=201)
async def add_dependency(
    task_id: int,
    body: DependencyRequest,
    user: PortalUser = Depends(require_auth),
) -> dict:
    """Record that ``task_id`` cannot finish before ``depends_on_task_id``."""
    factory = get_session_factory()
    async with factory() as session:
        async with session.begin():
            await load_task(session, task_id)
            await load_task(session, body.depends_on_task_id)
            if task_id == body.depends_on_task_id:
                raise InvalidInput("Task cannot depend on itself")

            existing = await session.execute(
                select(TaskDependency.id).where(
                    TaskDependency.task_id == task_id,
                    TaskDependency.depends_on_task_id == body.depends_on_task_id,
                )
            )
            if existing.scalar_one_or_none() is not None:
                raise Conflict("Dependency already exists")

            dependency = TaskDependency(
                task_id=task_id, depends_on_task_id=body.depends_on_task_id
            )
            session.add(dependency)

    logger.info(
        "task_dependency_added",
        task_id=task_id,
        depends_on_task_id=body.depends_on_task_id,
        user_id=user.user_id,
    )
    return {"message": "Dependency added successfully", "dependency": _format_dependency(dependency)}


@router.delete("/{task_id}/dependencies/{dependency_id}")
async def remove_dependency(
    task_id: int,
    dependency_id: int,
    user: PortalUser = Depends(require_auth),
) -> dict:
    factory = get_session_factory()
    async with factory() as session:
        result = await session.execute(
            sa_delete(TaskDependency).where(
                TaskDependency.id == dependency_id, TaskDependency.task_id == task_id
            )
        )
        await session.commit()
    if not result.rowcount:
        raise NotFound("Dependency not found")
    return {"message": "Dependency removed successfully"}


# --------------- Comments ---------------


async def _load_comment(session, task_id: int, comment_id: int) -> TaskComment:
    result = await session.execute(
        select(TaskComment).where(TaskComment.id == comment_id, TaskComment.task_id == task_id)
    )
    comment = result.scalar_one_or_none()
    if comment is None:
        raise NotFound("Comment not found")
    return comment


@router.get("/{task_id}/comments")
async def list_comments(
    task_id: int,
    user: PortalUser = Depends(require_auth),
) -> dict:
    factory = get_session_factory()
    async with factory() as session:
        result = await session.execute(
            select(TaskComment)
            .where(TaskComment.task_id == task_id)
            .order_by(TaskComment.created_at)
        )
        comments = result.scalars().all()
    return {"comments": [_format_comment(c) for c in comments]}


@router.post("/{task_id}/comments", status_code=201)
async def add_comment(
    task_id: int,
    body: CommentRequest,
    user: PortalUser = Depends(require_auth),
) -> dict:
    if not body.comment.strip():
        raise InvalidInput("Comment is required")

    factory = get_session_factory()
    async with factory() as session:
        async with session.begin():
            await load_task(session, task_id)
            comment = TaskComment(task_id=task_id, user_id=user.user_id, comment=body.comment)
            session.add(comment)

    return {"message": "Comment added successfully", "comment": _format_comment(comment)}


@router.put("/{task_id}/comments/{comment_id}")
async def update_comment(
    task_id: int,
    comment_id: int,
    body: CommentRequest,
    user: PortalUser = Depends(require_auth),
) -> dict:
    if not body.comment.strip():
        raise InvalidInput("Comment is required")

    factory = get_session_factory()
    async with factory() as session:
        async with session.begin():
            comment = await _load_comment(session, task_id, comment_id)
            raise_if_denied(
                can_edit_comment(user.actor, CommentRef.from_model(comment)),
                check="edit_comment",
                user_id=user.user_id,
            )
            comment.comment = body.comment

    return {"message": "Comment updated successfully", "comment": _format_comment(comment)}


@router.delete("/{task_id}/comments/{comment_id}")
async def delete_comment(
    task_id: int,
    comment_id: int,
    user: PortalUser = Depends(require_auth),
) -> dict:
    factory = get_session_factory()
    async with factory() as session:
        async with session.begin():
            comment = await _load_comment(session, task_id, comment_id)
            raise_if_denied(
                can_delete_comment(user.actor, CommentRef.from_model(comment)),
                check="delete_comment",
                user_id=user.user_id,
            )
            await session.delete(comment)

    return {"message": "Comment deleted successfully"}


# --------------- Attachments ---------------


@router.get("/{task_id}/attachments")
async def list_attachments(
    task_id: int,
    user: PortalUser = Depends(require_auth),
) -> dict:
    factory = get_session_factory()
    async with factory() as session:
        result = await session.execute(
            select(Attachment)
            .where(Attachment.task_id == task_id)
            .order_by(Attachment.created_at.desc())
        )
        attachments = result.scalars().all()
    return {"attachments": [format_attachment(a) for a in attachments]}


@router.post("/{task_id}/attachments", status_code=201)
async def upload_attachment(
    task_id: int,
    file: UploadFile = File(...),
    description: str | None = Form(None),
    user: PortalUser = Depends(require_auth),
) -> dict:
    factory = get_session_factory()
    async with factory() as session:
        async with session.begin():
            task = await load_task(session, task_id)
            raise_if_denied(
                can_upload_task_attachment(user.actor, TaskRef.from_model(task)),
                check="upload_task_attachment",
                user_id=user.user_id,
            )
            content, file_hash = await read_upload(file)
            attachment = Attachment(
                task_id=task_id,
                attachment_type="file",
                file_name=file.filename or "upload",
                mime_type=file.content_type,
                file_size=len(content),
                file_content=content,
                file_hash=file_hash,
                description=description,
                uploaded_by=user.user_id,
            )
            session.add(attachment)

    logger.info("task_attachment_uploaded", task_id=task_id, attachment_id=attachment.id)
    return {"message": "Attachment uploaded successfully", "attachment": format_attachment(attachment)}


@router.post("/{task_id}/attachments/url", status_code=201)
async def add_url_attachment(
    task_id: int,
    body: UrlAttachmentRequest,
    user: PortalUser = Depends(require_auth),
) -> dict:
    if not body.url.strip():
        raise InvalidInput("URL is required")

    factory = get_session_factory()
    async with factory() as session:
        async with session.begin():
            task = await load_task(session, task_id)
            raise_if_denied(
                can_upload_task_attachment(user.actor, TaskRef.from_model(task)),
                check="upload_task_attachment",
                user_id=user.user_id,
            )
            attachment = Attachment(
                task_id=task_id,
                attachment_type="url",
                file_name=body.file_name or body.url,
                url=body.url,
                description=body.description,
                uploaded_by=user.user_id,
            )
            session.add(attachment)

    return {"message": "Link added successfully", "attachment": format_attachment(attachment)}


@router.get("/{task_id}/attachments/{attachment_id}/download")
async def download_attachment(
    task_id: int,
    attachment_id: int,
    user: PortalUser = Depends(require_auth),
) -> Response:
    factory = get_session_factory()
    async with factory() as session:
        result = await session.execute(
            select(Attachment)
            .options(undefer(Attachment.file_content))
            .where(Attachment.id == attachment_id, Attachment.task_id == task_id)
        )
        attachment = result.scalar_one_or_none()

    if attachment is None:
        raise NotFound("Attachment not found")
    if attachment.attachment_type != "file" or attachment.file_content is None:
        raise NotFound("File content not found")
    return Response(
        content=attachment.file_content,
        media_type=attachment.mime_type or "application/octet-stream",
        headers={"Content-Disposition": content_disposition(attachment.file_name)},
    )


@router.delete("/{task_id}/attachments/{attachment_id}")
async def delete_attachment(
    task_id: int,
    attachment_id: int,
    user: PortalUser = Depends(require_auth),
) -> dict:
    factory = get_session_factory()
    async with factory() as session:
        async with session.begin():
            result = await session.execute(
                select(Attachment).where(
                    Attachment.id == attachment_id, Attachment.task_id == task_id
                )
            )
            attachment = result.scalar_one_or_none()
            if attachment is None:
                raise NotFound("Attachment not found")
            raise_if_denied(
                can_delete_attachment(user.actor, AttachmentRef.from_model(attachment)),
                check="delete_attachment",
                user_id=user.user_id,
            )
            await session.delete(attachment)

    return {"message": "Attachment deleted successfully"}
