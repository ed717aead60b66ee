"""Project, membership and project document endpoints."""

from __future__ import annotations

from datetime import date

import structlog
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel
from sqlalchemy import delete as sa_delete
from sqlalchemy import func, select
from sqlalchemy.orm import undefer

from portal.auth import PortalUser, require_auth
from portal.errors import raise_if_denied
from portal.services.attachments import content_disposition, format_attachment, read_upload
from portal.services.lookups import (
    load_project,
    member_project_ids,
    project_member_ids,
)
from taskflow.database import get_session_factory
from taskflow.errors import Conflict, NotFound
from taskflow.models.attachment import Attachment
from taskflow.models.project import Project, ProjectMember
from taskflow.models.user import User
from taskflow.permissions import (
    AttachmentRef,
    ProjectRef,
    ProjectRole,
    can_delete_attachment,
    can_delete_project,
    can_manage_members,
    can_manage_projects,
    can_upload_project_attachment,
    can_view_project,
    can_view_project_documents,
    project_visibility_scope,
)
from taskflow.workflow import ProjectStatusWorkflow

logger = structlog.get_logger()
router = APIRouter(prefix="/api/projects", tags=["projects"])


# --------------- Request schemas ---------------


class CreateProjectRequest(BaseModel):
    title: str
    description: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    # Initial workflow; the default template is used when omitted
    statuses: list[dict] | None = None


class UpdateProjectRequest(BaseModel):
    title: str | None = None
    description: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    status: str | None = None


class AddMemberRequest(BaseModel):
    user_id: int
    project_role: ProjectRole


class UpdateMemberRequest(BaseModel):
    project_role: ProjectRole


def _format_project(p: Project) -> dict:
    return {
        "id": p.id,
        "title": p.title,
        "description": p.description,
        "start_date": p.start_date.isoformat() if p.start_date else None,
        "end_date": p.end_date.isoformat() if p.end_date else None,
        "status": p.status,
        "created_by": p.created_by,
        "created_at": p.created_at.isoformat() if p.created_at else None,
        "updated_at": p.updated_at.isoformat() if p.updated_at else None,
    }


def _format_member(m: ProjectMember, u: User | None = None) -> dict:
    d = {
        "id": m.id,
        "project_id": m.project_id,
        "user_id": m.user_id,
        "project_role": m.project_role,
    }
    if u is not None:
        d.update(
            first_name=u.first_name,
            last_name=u.last_name,
            email=u.email,
            system_role=u.role,
        )
    return d


# --------------- Project endpoints ---------------


@router.get("")
async def list_projects(
    status: str | None = Query(None),
    user: PortalUser = Depends(require_auth),
) -> dict:
    """List projects. Leads and members only see projects they belong to."""
    factory = get_session_factory()
    async with factory() as session:
        scope = project_visibility_scope(
            user.actor, await member_project_ids(session, user.user_id)
        )
        query = select(Project).order_by(Project.created_at.desc())
        if scope is not None:
            query = query.where(Project.id.in_(scope))
        if status:
            query = query.where(Project.status == status)
        projects = (await session.execute(query)).scalars().all()

        counts: dict[int, int] = {}
        if projects:
            rows = await session.execute(
                select(ProjectMember.project_id, func.count(ProjectMember.id))
                .where(ProjectMember.project_id.in_([p.id for p in projects]))
                .group_by(ProjectMember.project_id)
            )
            counts = {pid: n for pid, n in rows.all()}

    return {
        "projects": [
            {**_format_project(p), "member_count": counts.get(p.id, 0)} for p in projects
        ]
    }


@router.post("", status_code=201)
async def create_project(
    body: CreateProjectRequest,
    user: PortalUser = Depends(require_auth),
) -> dict:
    """Create a project together with its initial status workflow."""
    raise_if_denied(can_manage_projects(user.actor), check="manage_projects", user_id=user.user_id)

    factory = get_session_factory()
    workflow = ProjectStatusWorkflow(factory)
    async with factory() as session:
        async with session.begin():
            project = Project(
                title=body.title,
                description=body.description,
                start_date=body.start_date,
                end_date=body.end_date,
                created_by=user.user_id,
            )
            session.add(project)
            await session.flush()

            statuses = await workflow.seed_statuses(session, project.id, body.statuses)
            project.status = next(s.name for s in statuses if s.is_start)

    logger.info("project_created", project_id=project.id, title=project.title, statuses=len(statuses))
    return {"message": "Project created successfully", "project": _format_project(project)}


@router.get("/{project_id}")
async def get_project(
    project_id: int,
    user: PortalUser = Depends(require_auth),
) -> dict:
    """Project detail with its members."""
    factory = get_session_factory()
    async with factory() as session:
        project = await load_project(session, project_id)
        member_ids = await project_member_ids(session, project_id)
        raise_if_denied(
            can_view_project(user.actor, ProjectRef.from_model(project), member_ids),
            check="view_project",
            user_id=user.user_id,
        )
        rows = await session.execute(
            select(ProjectMember, User)
            .join(User, ProjectMember.user_id == User.id)
            .where(ProjectMember.project_id == project_id)
        )
        members = [_format_member(m, u) for m, u in rows.all()]

    return {"project": {**_format_project(project), "members": members}}


@router.patch("/{project_id}")
async def update_project(
    project_id: int,
    body: UpdateProjectRequest,
    user: PortalUser = Depends(require_auth),
) -> dict:
    raise_if_denied(can_manage_projects(user.actor), check="manage_projects", user_id=user.user_id)

    factory = get_session_factory()
    async with factory() as session:
        async with session.begin():
            project = await load_project(session, project_id)
            for field, value in body.model_dump(exclude_unset=True).items():
                if field in ("title", "status") and not value:
                    continue
                setattr(project, field, value)

    return {"message": "Project updated successfully", "project": _format_project(project)}


@router.delete("/{project_id}")
async def delete_project(
    project_id: int,
    user: PortalUser = Depends(require_auth),
) -> dict:
    raise_if_denied(can_delete_project(user.actor), check="delete_project", user_id=user.user_id)

    factory = get_session_factory()
    async with factory() as session:
        async with session.begin():
            project = await load_project(session, project_id)
            await session.delete(project)

    logger.info("project_deleted", project_id=project_id)
    return {"message": "Project deleted successfully"}


# --------------- Members ---------------


@router.get("/{project_id}/members")
async def list_members(
    project_id: int,
    user: PortalUser = Depends(require_auth),
) -> dict:
    factory = get_session_factory()
    async with factory() as session:
        rows = await session.execute(
            select(ProjectMember, User)
            .join(User, ProjectMember.user_id == User.id)
            .where(ProjectMember.project_id == project_id)
        )
        members = [_format_member(m, u) for m, u in rows.all()]
    return {"members": members}


@router.post("/{project_id}/members", status_code=201)
async def add_member(
    project_id: int,
    body: AddMemberRequest,
    user: PortalUser = Depends(require_auth),
) -> dict:
    raise_if_denied(can_manage_members(user.actor), check="manage_members", user_id=user.user_id)

    factory = get_session_factory()
    async with factory() as session:
        async with session.begin():
            await load_project(session, project_id)
            if await session.get(User, body.user_id) is None:
                raise NotFound("User not found")
            if body.user_id in await project_member_ids(session, project_id):
                raise Conflict("User is already a member of this project")

            member = ProjectMember(
                project_id=project_id,
                user_id=body.user_id,
                project_role=body.project_role.value,
            )
            session.add(member)

    logger.info("project_member_added", project_id=project_id, user_id=body.user_id)
    return {"message": "Member added successfully", "member": _format_member(member)}


@router.patch("/{project_id}/members/{member_id}")
async def update_member_role(
    project_id: int,
    member_id: int,
    body: UpdateMemberRequest,
    user: PortalUser = Depends(require_auth),
) -> dict:
    raise_if_denied(can_manage_members(user.actor), check="manage_members", user_id=user.user_id)

    factory = get_session_factory()
    async with factory() as session:
        async with session.begin():
            result = await session.execute(
                select(ProjectMember).where(
                    ProjectMember.id == member_id, ProjectMember.project_id == project_id
                )
            )
            member = result.scalar_one_or_none()
            if member is None:
                raise NotFound("Member not found")
            member.project_role = body.project_role.value

    return {"message": "Member role updated successfully", "member": _format_member(member)}


@router.delete("/{project_id}/members/{member_id}")
async def remove_member(
    project_id: int,
    member_id: int,
    user: PortalUser = Depends(require_auth),
) -> dict:
    raise_if_denied(can_manage_members(user.actor), check="manage_members", user_id=user.user_id)

    factory = get_session_factory()
    async with factory() as session:
        result = await session.execute(
            sa_delete(ProjectMember).where(
                ProjectMember.id == member_id, ProjectMember.project_id == project_id
            )
        )
        await session.commit()
    if not result.rowcount:
        raise NotFound("Member not found")
    return {"message": "Member removed successfully"}


# --------------- Documents ---------------


@router.get("/{project_id}/documents")
async def list_documents(
    project_id: int,
    user: PortalUser = Depends(require_auth),
) -> dict:
    factory = get_session_factory()
    async with factory() as session:
        project = await load_project(session, project_id)
        raise_if_denied(
            can_view_project_documents(
                user.actor,
                ProjectRef.from_model(project),
                await project_member_ids(session, project_id),
            ),
            check="view_project_documents",
            user_id=user.user_id,
        )
        result = await session.execute(
            select(Attachment)
            .where(Attachment.project_id == project_id, Attachment.attachment_type == "file")
            .order_by(Attachment.created_at.desc())
        )
        attachments = result.scalars().all()
    return {"attachments": [format_attachment(a) for a in attachments]}


@router.post("/{project_id}/documents", status_code=201)
async def upload_document(
    project_id: int,
    file: UploadFile = File(...),
    description: str | None = Form(None),
    user: PortalUser = Depends(require_auth),
) -> dict:
    factory = get_session_factory()
    async with factory() as session:
        async with session.begin():
            project = await load_project(session, project_id)
            raise_if_denied(
                can_upload_project_attachment(user.actor, ProjectRef.from_model(project)),
                check="upload_project_attachment",
                user_id=user.user_id,
            )
            content, file_hash = await read_upload(file)
            attachment = Attachment(
                project_id=project_id,
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

    logger.info("project_document_uploaded", project_id=project_id, attachment_id=attachment.id)
    return {"message": "Document uploaded successfully", "attachment": format_attachment(attachment)}


@router.get("/{project_id}/documents/{attachment_id}/download")
async def download_document(
    project_id: int,
    attachment_id: int,
    user: PortalUser = Depends(require_auth),
) -> Response:
    factory = get_session_factory()
    async with factory() as session:
        result = await session.execute(
            select(Attachment)
            .options(undefer(Attachment.file_content))
            .where(Attachment.id == attachment_id, Attachment.project_id == project_id)
        )
        attachment = result.scalar_one_or_none()
        if attachment is None:
            raise NotFound("Document not found")
        project = await load_project(session, project_id)
        raise_if_denied(
            can_view_project_documents(
                user.actor,
                ProjectRef.from_model(project),
                await project_member_ids(session, project_id),
            ),
            check="view_project_documents",
            user_id=user.user_id,
        )

    if attachment.attachment_type != "file" or attachment.file_content is None:
        raise NotFound("File content not found")
    return Response(
        content=attachment.file_content,
        media_type=attachment.mime_type or "application/octet-stream",
        headers={"Content-Disposition": content_disposition(attachment.file_name)},
    )


@router.delete("/{project_id}/documents/{attachment_id}")
async def delete_document(
    project_id: int,
    attachment_id: int,
    user: PortalUser = Depends(require_auth),
) -> dict:
    factory = get_session_factory()
    async with factory() as session:
        async with session.begin():
            result = await session.execute(
                select(Attachment).where(
                    Attachment.id == attachment_id, Attachment.project_id == project_id
                )
            )
            attachment = result.scalar_one_or_none()
            if attachment is None:
                raise NotFound("Document not found")
            raise_if_denied(
                can_delete_attachment(user.actor, AttachmentRef.from_model(attachment)),
                check="delete_attachment",
                user_id=user.user_id,
            )
            await session.delete(attachment)

    return {"message": "Document deleted successfully"}
