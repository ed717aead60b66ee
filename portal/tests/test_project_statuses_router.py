"""Tests for project status router endpoints."""

import pytest
from fastapi.testclient import TestClient

from portal.auth import create_access_token
from portal.routers.project_statuses import (
    delete_project_status,
    get_default_statuses,
    get_project_statuses,
    replace_project_statuses,
    router,
)
from taskflow.errors import Forbidden, InvalidInput
from taskflow.schemas.statuses import ReplaceStatusesRequest


class TestProjectStatusesRouterStructure:
    """Test cases for router structure and route definitions."""

    def test_router_prefix(self):
        assert router.prefix == "/api/project-statuses"

    def test_router_tags(self):
        assert "project-statuses" in router.tags

    def test_route_methods(self):
        routes_by_method = {}
        for route in router.routes:
            for method in route.methods:
                routes_by_method.setdefault(method, []).append(route.path.removeprefix(router.prefix))

        assert "/default" in routes_by_method.get("GET", [])
        assert "/project/{project_id}" in routes_by_method.get("GET", [])
        assert "/project/{project_id}" in routes_by_method.get("PUT", [])
        assert "/project/{project_id}/status/{status_id}" in routes_by_method.get("DELETE", [])


class TestStatusEndpoints:

    @pytest.mark.asyncio
    async def test_default_template(self, as_user):
        result = await get_default_statuses(user=as_user(5))
        statuses = result["statuses"]
        assert [s["order"] for s in statuses] == [0, 1, 2, 3, 4]
        assert statuses[0]["name"] == "Planning"
        assert statuses[0]["is_start"] is True
        assert statuses[-1]["is_end"] is True

    @pytest.mark.asyncio
    async def test_manager_replaces_statuses(self, db, as_user):
        body = ReplaceStatusesRequest(
            statuses=[
                {"status_name": "Backlog", "is_start_status": True},
                {"name": "Done", "is_end": True, "color": "#10B981"},
            ]
        )
        result = await replace_project_statuses(1, body, user=as_user(2))

        assert result["message"] == "Project statuses updated successfully"
        assert [(s["name"], s["order"]) for s in result["statuses"]] == [("Backlog", 0), ("Done", 1)]

        listed = await get_project_statuses(1, user=as_user(5))
        assert [s["name"] for s in listed["statuses"]] == ["Backlog", "Done"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("user_id", [3, 5])
    async def test_lead_and_member_cannot_replace(self, db, as_user, user_id):
        body = ReplaceStatusesRequest(statuses=[{"name": "A", "is_start": True, "is_end": True}])
        with pytest.raises(Forbidden, match="Only admin and manager"):
            await replace_project_statuses(1, body, user=as_user(user_id))

        listed = await get_project_statuses(1, user=as_user(5))
        assert listed["statuses"] == []

    @pytest.mark.asyncio
    async def test_member_forbidden_even_with_invalid_list(self, db, as_user):
        with pytest.raises(Forbidden):
            await replace_project_statuses(
                1, ReplaceStatusesRequest(statuses=[]), user=as_user(5)
            )

    @pytest.mark.asyncio
    async def test_missing_list_rejected(self, db, as_user):
        with pytest.raises(InvalidInput, match="at least one status required"):
            await replace_project_statuses(1, ReplaceStatusesRequest(), user=as_user(1))

    @pytest.mark.asyncio
    async def test_delete_status(self, db, as_user):
        body = ReplaceStatusesRequest(
            statuses=[
                {"name": "Todo", "is_start": True},
                {"name": "Doing"},
                {"name": "Done", "is_end": True},
            ]
        )
        result = await replace_project_statuses(1, body, user=as_user(1))
        doing_id = result["statuses"][1]["id"]

        deleted = await delete_project_status(1, doing_id, user=as_user(2))
        assert deleted == {"message": "Status deleted successfully"}

        listed = await get_project_statuses(1, user=as_user(2))
        assert [s["name"] for s in listed["statuses"]] == ["Todo", "Done"]

    @pytest.mark.asyncio
    async def test_member_cannot_delete(self, db, as_user):
        with pytest.raises(Forbidden):
            await delete_project_status(1, 1, user=as_user(7))


class TestHttpMapping:
    """Errors reach the client as status codes with a ``detail`` body."""

    def test_missing_token(self, jwt_secret):
        from portal.main import app

        client = TestClient(app)
        resp = client.get("/api/project-statuses/default")
        assert resp.status_code == 401

    def test_invalid_token(self, jwt_secret):
        from portal.main import app

        client = TestClient(app)
        resp = client.get(
            "/api/project-statuses/default",
            headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid token"

    def test_default_with_token(self, jwt_secret):
        from portal.main import app

        token = create_access_token(5, "member")
        client = TestClient(app)
        resp = client.get(
            "/api/project-statuses/default",
            headers={"Authorization": f"Bearer {token}"},
        )
        assert resp.status_code == 200
        assert len(resp.json()["statuses"]) == 5

    def test_forbidden_is_403(self, jwt_secret):
        from portal.main import app

        token = create_access_token(5, "member")
        client = TestClient(app)
        resp = client.put(
            "/api/project-statuses/project/1",
            json={"statuses": [{"name": "A", "is_start": True, "is_end": True}]},
            headers={"Authorization": f"Bearer {token}"},
        )
        assert resp.status_code == 403
        assert resp.json() == {"detail": "Only admin and manager can configure project statuses"}

    def test_unknown_role_rejected(self, jwt_secret):
        from portal.main import app

        token = create_access_token(5, "superuser")
        client = TestClient(app)
        resp = client.get(
            "/api/project-statuses/default",
            params={"token": token},
        )
        assert resp.status_code == 401
