"""Authorization rules for projects, tasks, comments, attachments and statuses.

Every check is a pure function of the acting user and the few resource
fields it needs. Callers load resource state first and pass it in; nothing
here touches the database. A check returns a :class:`Decision`, which is
truthy when the action is allowed and carries a reason when it is not.

Malformed input (an actor or resource without an id, an unknown role) is a
programming error and raises ``ValueError``. A normal deny never raises.

Usage::

    from taskflow.permissions import Actor, TaskRef, can_edit_task

    decision = can_edit_task(actor, TaskRef.from_model(task))
    if not decision:
        raise Forbidden(decision.reason)
"""

from __future__ import annotations

import enum
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any, TypeVar

T = TypeVar("T")


class SystemRole(str, enum.Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    LEAD = "lead"
    MEMBER = "member"


class ProjectRole(str, enum.Enum):
    DEVELOPER = "developer"
    TESTER = "tester"
    BUSINESS_ANALYST = "business_analyst"
    DESIGNER = "designer"
    DEVOPS = "devops"
    PROJECT_MANAGER = "project_manager"


PRIVILEGED_ROLES = frozenset({SystemRole.ADMIN, SystemRole.MANAGER})
MEMBERSHIP_MANAGER_ROLES = frozenset({SystemRole.ADMIN, SystemRole.MANAGER, SystemRole.LEAD})


def _require_id(value: Any, what: str) -> int:
    if value is None or isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{what} requires an integer id, got {value!r}")
    return value


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Actor:
    """The authenticated caller. Trusted as given by the token layer."""

    id: int
    system_role: SystemRole

    def __post_init__(self) -> None:
        _require_id(self.id, "Actor")
        # Accept plain strings from token payloads; unknown roles raise ValueError
        object.__setattr__(self, "system_role", SystemRole(self.system_role))


@dataclass(frozen=True)
class TaskRef:
    id: int
    project_id: int
    created_by: int
    assigned_to: int | None = None

    def __post_init__(self) -> None:
        _require_id(self.id, "TaskRef")
        _require_id(self.project_id, "TaskRef.project_id")
        _require_id(self.created_by, "TaskRef.created_by")

    @classmethod
    def from_model(cls, task: Any) -> TaskRef:
        return cls(
            id=task.id,
            project_id=task.project_id,
            created_by=task.created_by,
            assigned_to=task.assigned_to,
        )


@dataclass(frozen=True)
class CommentRef:
    id: int
    task_id: int
    user_id: int

    def __post_init__(self) -> None:
        _require_id(self.id, "CommentRef")
        _require_id(self.user_id, "CommentRef.user_id")

    @classmethod
    def from_model(cls, comment: Any) -> CommentRef:
        return cls(id=comment.id, task_id=comment.task_id, user_id=comment.user_id)


@dataclass(frozen=True)
class AttachmentRef:
    id: int
    uploaded_by: int
    task_id: int | None = None
    project_id: int | None = None

    def __post_init__(self) -> None:
        _require_id(self.id, "AttachmentRef")
        _require_id(self.uploaded_by, "AttachmentRef.uploaded_by")

    @classmethod
    def from_model(cls, attachment: Any) -> AttachmentRef:
        return cls(
            id=attachment.id,
            uploaded_by=attachment.uploaded_by,
            task_id=attachment.task_id,
            project_id=attachment.project_id,
        )


@dataclass(frozen=True)
class ProjectRef:
    id: int
    created_by: int

    def __post_init__(self) -> None:
        _require_id(self.id, "ProjectRef")
        _require_id(self.created_by, "ProjectRef.created_by")

    @classmethod
    def from_model(cls, project: Any) -> ProjectRef:
        return cls(id=project.id, created_by=project.created_by)


# ---------------------------------------------------------------------------
# Outcome
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str | None = None

    @classmethod
    def allow(cls) -> Decision:
        return cls(True)

    @classmethod
    def deny(cls, reason: str) -> Decision:
        return cls(False, reason)

    def __bool__(self) -> bool:
        return self.allowed


# ---------------------------------------------------------------------------
# Checks
# ---------------------------------------------------------------------------


def is_privileged(actor: Actor) -> bool:
    """Admins and managers pass every project and task check below except
    comment edit. The user directory checks have their own role rules."""
    return actor.system_role in PRIVILEGED_ROLES


def can_edit_task(actor: Actor, task: TaskRef) -> Decision:
    if is_privileged(actor):
        return Decision.allow()
    if actor.id == task.assigned_to or actor.id == task.created_by:
        return Decision.allow()
    return Decision.deny("Only the task's assignee, its creator, an admin or a manager can edit it")


def reassignment_requested(task: TaskRef, new_assignee: int | None) -> bool:
    return new_assignee != task.assigned_to


def can_reassign_task(actor: Actor, task: TaskRef, new_assignee: int | None) -> Decision:
    """Check a change of ``assigned_to``.

    Re-sending the current assignee is not a reassignment and is always
    allowed without looking at the actor.
    """
    if not reassignment_requested(task, new_assignee):
        return Decision.allow()
    if is_privileged(actor):
        return Decision.allow()
    if actor.id == task.created_by or actor.id == task.assigned_to:
        return Decision.allow()
    return Decision.deny(
        "Only the task's creator, its current assignee, an admin or a manager can reassign it"
    )


def can_edit_comment(actor: Actor, comment: CommentRef) -> Decision:
    # No privileged override: a comment is only ever edited by its author
    if actor.id == comment.user_id:
        return Decision.allow()
    return Decision.deny("Only the author can edit a comment")


def can_delete_comment(actor: Actor, comment: CommentRef) -> Decision:
    if is_privileged(actor) or actor.id == comment.user_id:
        return Decision.allow()
    return Decision.deny("Only the author, an admin or a manager can delete a comment")


def can_delete_attachment(actor: Actor, attachment: AttachmentRef) -> Decision:
    if is_privileged(actor) or actor.id == attachment.uploaded_by:
        return Decision.allow()
    return Decision.deny("Only the uploader, an admin or a manager can delete this attachment")


def can_upload_task_attachment(actor: Actor, task: TaskRef) -> Decision:
    if is_privileged(actor):
        return Decision.allow()
    if actor.id == task.assigned_to or actor.id == task.created_by:
        return Decision.allow()
    return Decision.deny("You do not have permission to upload attachments to this task")


def can_upload_project_attachment(actor: Actor, project: ProjectRef) -> Decision:
    if is_privileged(actor) or actor.id == project.created_by:
        return Decision.allow()
    return Decision.deny("You do not have permission to upload documents to this project")


def can_view_project_documents(
    actor: Actor, project: ProjectRef, member_ids: Iterable[int]
) -> Decision:
    if is_privileged(actor) or actor.id == project.created_by:
        return Decision.allow()
    if actor.id in set(member_ids):
        return Decision.allow()
    return Decision.deny("You do not have access to this project's documents")


def can_view_project(actor: Actor, project: ProjectRef, member_ids: Iterable[int]) -> Decision:
    if is_privileged(actor):
        return Decision.allow()
    if actor.id in set(member_ids):
        return Decision.allow()
    return Decision.deny("Access denied. You are not a member of this project.")


def can_configure_statuses(actor: Actor) -> Decision:
    if is_privileged(actor):
        return Decision.allow()
    return Decision.deny("Only admin and manager can configure project statuses")


def can_manage_members(actor: Actor) -> Decision:
    if actor.system_role in MEMBERSHIP_MANAGER_ROLES:
        return Decision.allow()
    return Decision.deny("Only admin, manager or lead can manage project members")


def can_manage_projects(actor: Actor) -> Decision:
    if actor.system_role in MEMBERSHIP_MANAGER_ROLES:
        return Decision.allow()
    return Decision.deny("Only admin, manager or lead can create or update projects")


def can_delete_project(actor: Actor) -> Decision:
    if is_privileged(actor):
        return Decision.allow()
    return Decision.deny("Only admin and manager can delete projects")


# ---------------------------------------------------------------------------
# User directory
# ---------------------------------------------------------------------------

# Fields of a user record only an admin may change
ADMIN_ONLY_USER_FIELDS = frozenset({"role", "is_active"})


def can_manage_users(actor: Actor) -> Decision:
    """Create, deactivate or delete user accounts."""
    if actor.system_role is SystemRole.ADMIN:
        return Decision.allow()
    return Decision.deny("Only admin can create, deactivate or delete users")


def can_update_user(actor: Actor, user_id: int, fields: Iterable[str]) -> Decision:
    """Update the user record ``user_id``, touching ``fields``.

    Admins update anyone. Everyone else updates only their own record and
    never its role or active flag.
    """
    _require_id(user_id, "can_update_user")
    if actor.system_role is SystemRole.ADMIN:
        return Decision.allow()
    if actor.id != user_id:
        return Decision.deny("You can only update your own profile")
    if ADMIN_ONLY_USER_FIELDS.intersection(fields):
        return Decision.deny("Only admin can change a user's role or active status")
    return Decision.allow()


def can_change_user_role(actor: Actor) -> Decision:
    if is_privileged(actor):
        return Decision.allow()
    return Decision.deny("Only admin and manager can change user roles")


# ---------------------------------------------------------------------------
# Collection filters
# ---------------------------------------------------------------------------


def _membership_scope(actor: Actor, member_project_ids: Iterable[int]) -> frozenset[int] | None:
    if is_privileged(actor):
        return None
    return frozenset(member_project_ids)


def task_visibility_scope(
    actor: Actor, member_project_ids: Iterable[int]
) -> frozenset[int] | None:
    """Project ids whose tasks the actor may list, or ``None`` for no restriction.

    Applied to list queries before any per-task check; get-by-id is not
    filtered.
    """
    return _membership_scope(actor, member_project_ids)


def project_visibility_scope(
    actor: Actor, member_project_ids: Iterable[int]
) -> frozenset[int] | None:
    """Project ids the actor may list, or ``None`` for no restriction."""
    return _membership_scope(actor, member_project_ids)


def filter_visible_tasks(
    actor: Actor, tasks: Iterable[T], member_project_ids: Iterable[int]
) -> Iterator[T]:
    """Lazily yield the tasks in ``tasks`` the actor may see."""
    scope = task_visibility_scope(actor, member_project_ids)
    for task in tasks:
        if scope is None or task.project_id in scope:
            yield task


# ---------------------------------------------------------------------------
# Task updates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TaskUpdatePlan:
    """What an update request may actually change.

    ``decision`` is the edit decision for the whole request. ``reassignment``
    is ``None`` when ``assigned_to`` was absent or unchanged; otherwise it is
    the reassignment decision, and when that denies, ``assigned_to`` is left
    out of ``changes`` while the other fields still apply.
    """

    decision: Decision
    changes: dict[str, Any] = field(default_factory=dict)
    reassignment: Decision | None = None

    @property
    def reassignment_denied(self) -> bool:
        return self.reassignment is not None and not self.reassignment.allowed


def plan_task_update(actor: Actor, task: TaskRef, changes: dict[str, Any]) -> TaskUpdatePlan:
    decision = can_edit_task(actor, task)
    if not decision:
        return TaskUpdatePlan(decision=decision)

    applied = dict(changes)
    reassignment: Decision | None = None
    if "assigned_to" in applied and reassignment_requested(task, applied["assigned_to"]):
        reassignment = can_reassign_task(actor, task, applied["assigned_to"])
        if not reassignment:
            applied.pop("assigned_to")

    return TaskUpdatePlan(decision=decision, changes=applied, reassignment=reassignment)
