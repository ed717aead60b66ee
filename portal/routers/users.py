"""User directory endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import select

from portal.auth import PortalUser, require_auth
from portal.errors import raise_if_denied
from taskflow.database import get_session_factory
from taskflow.errors import Conflict, InvalidInput, NotFound
from taskflow.models.user import User
from taskflow.permissions import (
    SystemRole,
    can_change_user_role,
    can_manage_users,
    can_update_user,
)

logger = structlog.get_logger()
router = APIRouter(prefix="/api/users", tags=["users"])

# Fields where an empty value means "leave unchanged"
_SKIP_IF_EMPTY = frozenset({"first_name", "last_name", "email", "role"})


# --------------- Request schemas ---------------


class CreateUserRequest(BaseModel):
    email: str
    first_name: str
    last_name: str
    role: SystemRole = SystemRole.MEMBER
    department: str | None = None
    is_active: bool = True


class UpdateUserRequest(BaseModel):
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    role: SystemRole | None = None
    department: str | None = None
    is_active: bool | None = None


class UpdateRoleRequest(BaseModel):
    # Plain string so an unknown role is a 400 with a readable message
    role: str


def _format_user(u: User) -> dict:
    return {
        "id": u.id,
        "email": u.email,
        "first_name": u.first_name,
        "last_name": u.last_name,
        "role": u.role,
        "department": u.department,
        "is_active": u.is_active,
    }


async def _load_user(session, user_id: int) -> User:
    user = await session.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


async def _ensure_email_free(session, email: str, exclude_id: int | None = None) -> None:
    query = select(User.id).where(User.email == email)
    if exclude_id is not None:
        query = query.where(User.id != exclude_id)
    if (await session.execute(query)).scalar_one_or_none() is not None:
        raise Conflict("Email already registered")


# --------------- Endpoints ---------------


@router.get("")
async def list_users(
    user: PortalUser = Depends(require_auth),
) -> dict:
    factory = get_session_factory()
    async with factory() as session:
        result = await session.execute(select(User).order_by(User.first_name, User.id))
        users = result.scalars().all()
    return {"users": [_format_user(u) for u in users]}


@router.post("", status_code=201)
async def create_user(
    body: CreateUserRequest,
    user: PortalUser = Depends(require_auth),
) -> dict:
    raise_if_denied(can_manage_users(user.actor), check="manage_users", user_id=user.user_id)
    if not (body.email.strip() and body.first_name.strip() and body.last_name.strip()):
        raise InvalidInput("Missing required fields")

    factory = get_session_factory()
    async with factory() as session:
        async with session.begin():
            await _ensure_email_free(session, body.email)
            created = User(
                email=body.email,
                first_name=body.first_name,
                last_name=body.last_name,
                role=body.role.value,
                department=body.department,
                is_active=body.is_active,
            )
            session.add(created)

    logger.info("user_created", user_id=created.id, role=created.role, created_by=user.user_id)
    return {"message": "User created successfully", "user": _format_user(created)}


@router.get("/{user_id}")
async def get_user(
    user_id: int,
    user: PortalUser = Depends(require_auth),
) -> dict:
    factory = get_session_factory()
    async with factory() as session:
        found = await _load_user(session, user_id)
    return {"user": _format_user(found)}


@router.put("/{user_id}")
async def update_user(
    user_id: int,
    body: UpdateUserRequest,
    user: PortalUser = Depends(require_auth),
) -> dict:
    """Update a user. Non-admins may only edit their own basic profile."""
    changes = {
        k: v
        for k, v in body.model_dump(exclude_unset=True).items()
        if not (k in _SKIP_IF_EMPTY and not v)
    }
    # Booleans are NOT NULL; an explicit null leaves the flag alone
    if changes.get("is_active", False) is None:
        changes.pop("is_active")
    raise_if_denied(
        can_update_user(user.actor, user_id, changes),
        check="update_user",
        user_id=user.user_id,
    )

    factory = get_session_factory()
    async with factory() as session:
        async with session.begin():
            target = await _load_user(session, user_id)
            if "email" in changes:
                await _ensure_email_free(session, changes["email"], exclude_id=user_id)
            for field, value in changes.items():
                setattr(target, field, value.value if isinstance(value, SystemRole) else value)

    return {"message": "User updated successfully", "user": _format_user(target)}


@router.patch("/{user_id}/role")
async def update_user_role(
    user_id: int,
    body: UpdateRoleRequest,
    user: PortalUser = Depends(require_auth),
) -> dict:
    raise_if_denied(
        can_change_user_role(user.actor), check="change_user_role", user_id=user.user_id
    )
    try:
        role = SystemRole(body.role)
    except ValueError:
        raise InvalidInput("Invalid role")

    factory = get_session_factory()
    async with factory() as session:
        async with session.begin():
            target = await _load_user(session, user_id)
            target.role = role.value

    logger.info("user_role_changed", user_id=user_id, role=role.value, changed_by=user.user_id)
    return {"message": "User role updated successfully", "user": _format_user(target)}


@router.patch("/{user_id}/deactivate")
async def deactivate_user(
    user_id: int,
    user: PortalUser = Depends(require_auth),
) -> dict:
    raise_if_denied(can_manage_users(user.actor), check="manage_users", user_id=user.user_id)

    factory = get_session_factory()
    async with factory() as session:
        async with session.begin():
            target = await _load_user(session, user_id)
            target.is_active = False

    logger.info("user_deactivated", user_id=user_id, deactivated_by=user.user_id)
    return {"message": "User deactivated successfully"}


@router.delete("/{user_id}")
async def delete_user(
    user_id: int,
    user: PortalUser = Depends(require_auth),
) -> dict:
    raise_if_denied(can_manage_users(user.actor), check="manage_users", user_id=user.user_id)
    if user_id == user.user_id:
        raise InvalidInput("Cannot delete your own account")

    factory = get_session_factory()
    async with factory() as session:
        async with session.begin():
            target = await _load_user(session, user_id)
            await session.delete(target)

    logger.info("user_deleted", user_id=user_id, deleted_by=user.user_id)
    return {"message": "User deleted successfully"}
