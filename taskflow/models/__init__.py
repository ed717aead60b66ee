"""SQLAlchemy models."""

from taskflow.models.attachment import Attachment
from taskflow.models.base import Base
from taskflow.models.project import Project, ProjectMember
from taskflow.models.project_status import ProjectStatus
from taskflow.models.project_task import ProjectTask
from taskflow.models.task_comment import TaskComment
from taskflow.models.task_dependency import TaskDependency
from taskflow.models.user import User

__all__ = [
    "Attachment",
    "Base",
    "Project",
    "ProjectMember",
    "ProjectStatus",
    "ProjectTask",
    "TaskComment",
    "TaskDependency",
    "User",
]
