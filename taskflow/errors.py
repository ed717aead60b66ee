"""Typed business-rule failures raised by the core.

Each class carries the HTTP status the portal answers with, so the boundary
can translate them without inspecting messages. Anything that is not a
``TaskflowError`` is an unclassified internal failure and propagates as-is.
"""

from __future__ import annotations


class TaskflowError(Exception):
    status_code: int = 500

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class Forbidden(TaskflowError):
    """The actor is not allowed to perform the action."""

    status_code = 403


class NotFound(TaskflowError):
    """The resource is absent or belongs to a different parent."""

    status_code = 404


class InvalidInput(TaskflowError):
    """The request is malformed or breaks a business rule."""

    status_code = 400


class Conflict(TaskflowError):
    """A unique key would be duplicated."""

    status_code = 409
