"""Project status workflow endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from portal.auth import PortalUser, require_auth
from portal.errors import raise_if_denied
from taskflow.database import get_session_factory
from taskflow.models.project_status import ProjectStatus
from taskflow.permissions import can_configure_statuses
from taskflow.schemas.statuses import ReplaceStatusesRequest, StatusOut
from taskflow.workflow import ProjectStatusWorkflow

router = APIRouter(prefix="/api/project-statuses", tags=["project-statuses"])


def _workflow() -> ProjectStatusWorkflow:
    return ProjectStatusWorkflow(get_session_factory())


def _format_status(s: ProjectStatus) -> dict:
    return StatusOut.model_validate(s).model_dump()


@router.get("/default")
async def get_default_statuses(
    user: PortalUser = Depends(require_auth),
) -> dict:
    """Template used to seed the project creation wizard."""
    return {
        "statuses": [
            {**draft.model_dump(), "order": idx}
            for idx, draft in enumerate(ProjectStatusWorkflow.default_template())
        ]
    }


@router.get("/project/{project_id}")
async def get_project_statuses(
    project_id: int,
    user: PortalUser = Depends(require_auth),
) -> dict:
    """Active statuses of a project in workflow order."""
    statuses = await _workflow().list_active_statuses(project_id)
    return {"statuses": [_format_status(s) for s in statuses]}


@router.put("/project/{project_id}")
async def replace_project_statuses(
    project_id: int,
    body: ReplaceStatusesRequest,
    user: PortalUser = Depends(require_auth),
) -> dict:
    """Replace the whole status list of a project (admin/manager only)."""
    raise_if_denied(
        can_configure_statuses(user.actor), check="configure_statuses", user_id=user.user_id
    )
    statuses = await _workflow().replace_statuses(
        project_id, body.statuses, authorized=True
    )
    return {
        "statuses": [_format_status(s) for s in statuses],
        "message": "Project statuses updated successfully",
    }


@router.delete("/project/{project_id}/status/{status_id}")
async def delete_project_status(
    project_id: int,
    status_id: int,
    user: PortalUser = Depends(require_auth),
) -> dict:
    """Soft-delete one status (admin/manager only)."""
    raise_if_denied(
        can_configure_statuses(user.actor), check="configure_statuses", user_id=user.user_id
    )
    await _workflow().delete_status(project_id, status_id, authorized=True)
    return {"message": "Status deleted successfully"}
