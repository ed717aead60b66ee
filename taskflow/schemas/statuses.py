"""Schemas for project status workflows."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

DEFAULT_STATUS_COLOR = "#3B82F6"


class StatusDraft(BaseModel):
    """One entry of a submitted status list.

    Position in the submitted list decides the persisted order; any
    ``order`` the client sends along is dropped.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str = Field(validation_alias=AliasChoices("name", "status_name"))
    color: str = Field(
        default=DEFAULT_STATUS_COLOR,
        validation_alias=AliasChoices("color", "status_color"),
    )
    description: str | None = None
    is_start: bool = Field(default=False, validation_alias=AliasChoices("is_start", "is_start_status"))
    is_end: bool = Field(default=False, validation_alias=AliasChoices("is_end", "is_end_status"))

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("status name must not be empty")
        return v

    @field_validator("color", mode="before")
    @classmethod
    def _color_default(cls, v: object) -> object:
        # Clients send "" or null for "use the default colour"
        return v or DEFAULT_STATUS_COLOR


class ReplaceStatusesRequest(BaseModel):
    # Entries stay raw so the permission check runs before draft validation
    statuses: list[dict[str, Any]] | None = None


class StatusOut(BaseModel):
    """Serialized ``ProjectStatus`` row."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    project_id: int
    name: str
    color: str
    description: str | None = None
    order: int
    is_start: bool
    is_end: bool
    is_active: bool
