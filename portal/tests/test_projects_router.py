"""Tests for project router endpoints."""

import io

import pytest
from fastapi import UploadFile
from starlette.datastructures import Headers

from portal.routers.project_statuses import get_project_statuses
from portal.routers.projects import (
    AddMemberRequest,
    CreateProjectRequest,
    UpdateProjectRequest,
    add_member,
    create_project,
    delete_document,
    get_project,
    list_documents,
    list_projects,
    router,
    update_project,
    upload_document,
)
from taskflow.errors import Conflict, Forbidden, InvalidInput, NotFound


def _upload(name: str, content: bytes, content_type: str) -> UploadFile:
    return UploadFile(
        file=io.BytesIO(content),
        filename=name,
        headers=Headers({"content-type": content_type}),
    )


class TestProjectsRouterStructure:

    def test_router_prefix(self):
        assert router.prefix == "/api/projects"

    def test_route_paths(self):
        routes = [route.path.removeprefix(router.prefix) for route in router.routes]
        assert "" in routes
        assert "/{project_id}" in routes
        assert "/{project_id}/members" in routes
        assert "/{project_id}/members/{member_id}" in routes
        assert "/{project_id}/documents" in routes
        assert "/{project_id}/documents/{attachment_id}/download" in routes


class TestProjects:

    @pytest.mark.asyncio
    async def test_create_project_seeds_default_workflow(self, db, as_user):
        result = await create_project(CreateProjectRequest(title="CRM"), user=as_user(3))
        project = result["project"]
        assert project["status"] == "Planning"
        assert project["created_by"] == 3

        statuses = await get_project_statuses(project["id"], user=as_user(3))
        assert [s["name"] for s in statuses["statuses"]] == [
            "Planning",
            "In Progress",
            "Review",
            "Testing",
            "Completed",
        ]

    @pytest.mark.asyncio
    async def test_create_project_with_custom_workflow(self, db, as_user):
        body = CreateProjectRequest(
            title="Ops",
            statuses=[{"name": "Open", "is_start": True}, {"name": "Closed", "is_end": True}],
        )
        result = await create_project(body, user=as_user(2))
        assert result["project"]["status"] == "Open"

    @pytest.mark.asyncio
    async def test_invalid_workflow_creates_nothing(self, db, as_user):
        body = CreateProjectRequest(title="Broken", statuses=[{"name": "Open"}])
        with pytest.raises(InvalidInput):
            await create_project(body, user=as_user(2))

        listed = await list_projects(status=None, user=as_user(1))
        assert "Broken" not in [p["title"] for p in listed["projects"]]

    @pytest.mark.asyncio
    async def test_member_cannot_create(self, db, as_user):
        with pytest.raises(Forbidden):
            await create_project(CreateProjectRequest(title="Nope"), user=as_user(5))

    @pytest.mark.asyncio
    async def test_list_filtered_by_membership(self, db, as_user):
        member_view = await list_projects(status=None, user=as_user(11))
        assert [p["id"] for p in member_view["projects"]] == [2]

        admin_view = await list_projects(status=None, user=as_user(1))
        counts = {p["id"]: p["member_count"] for p in admin_view["projects"]}
        assert counts == {1: 2, 2: 1}

    @pytest.mark.asyncio
    async def test_get_project_requires_membership(self, db, as_user):
        result = await get_project(1, user=as_user(7))
        assert {m["user_id"] for m in result["project"]["members"]} == {5, 7}

        with pytest.raises(Forbidden, match="not a member"):
            await get_project(1, user=as_user(11))

    @pytest.mark.asyncio
    async def test_update_skips_empty_status(self, db, as_user):
        result = await update_project(
            1, UpdateProjectRequest(status="", description="Shop"), user=as_user(3)
        )
        assert result["project"]["status"] == "Planning"
        assert result["project"]["description"] == "Shop"


class TestMembers:

    @pytest.mark.asyncio
    async def test_lead_adds_member(self, db, as_user):
        result = await add_member(
            2, AddMemberRequest(user_id=5, project_role="designer"), user=as_user(3)
        )
        assert result["member"]["project_role"] == "designer"

    @pytest.mark.asyncio
    async def test_duplicate_member_conflict(self, db, as_user):
        with pytest.raises(Conflict):
            await add_member(
                1, AddMemberRequest(user_id=5, project_role="tester"), user=as_user(2)
            )

    @pytest.mark.asyncio
    async def test_unknown_user(self, db, as_user):
        with pytest.raises(NotFound):
            await add_member(
                1, AddMemberRequest(user_id=999, project_role="tester"), user=as_user(2)
            )

    @pytest.mark.asyncio
    async def test_member_cannot_add(self, db, as_user):
        with pytest.raises(Forbidden):
            await add_member(
                2, AddMemberRequest(user_id=5, project_role="tester"), user=as_user(7)
            )

    def test_unknown_project_role_rejected(self):
        with pytest.raises(ValueError):
            AddMemberRequest(user_id=5, project_role="janitor")


class TestDocuments:

    @pytest.mark.asyncio
    async def test_creator_uploads_and_members_list(self, db, as_user):
        result = await upload_document(
            1, file=_upload("brief.pdf", b"%PDF-1.4", "application/pdf"), description=None, user=as_user(2)
        )
        attachment = result["attachment"]
        assert attachment["file_size"] == 8
        assert len(attachment["file_hash"]) == 64

        listed = await list_documents(1, user=as_user(5))
        assert [a["file_name"] for a in listed["attachments"]] == ["brief.pdf"]

        with pytest.raises(Forbidden):
            await list_documents(1, user=as_user(11))

    @pytest.mark.asyncio
    async def test_member_cannot_upload(self, db, as_user):
        with pytest.raises(Forbidden):
            await upload_document(
                1, file=_upload("a.txt", b"a", "text/plain"), description=None, user=as_user(5)
            )

    @pytest.mark.asyncio
    async def test_disallowed_type(self, db, as_user):
        with pytest.raises(InvalidInput, match="Invalid file type"):
            await upload_document(
                1, file=_upload("a.exe", b"MZ", "application/x-msdownload"), description=None, user=as_user(2)
            )

    @pytest.mark.asyncio
    async def test_only_uploader_or_privileged_deletes(self, db, as_user):
        result = await upload_document(
            1, file=_upload("notes.txt", b"hi", "text/plain"), description="notes", user=as_user(2)
        )
        attachment_id = result["attachment"]["id"]

        with pytest.raises(Forbidden):
            await delete_document(1, attachment_id, user=as_user(5))

        deleted = await delete_document(1, attachment_id, user=as_user(1))
        assert deleted["message"] == "Document deleted successfully"
