from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from helpdesk.schemas.profile import ProfileSummary

TicketStatus = Literal["open", "in_progress", "resolved", "closed"]
TicketPriority = Literal["low", "medium", "high", "urgent"]


class TicketCreate(BaseModel):
    title: str = Field(min_length=5, max_length=255)
    description: str = Field(min_length=10)
    priority: TicketPriority
    department: str = Field(min_length=1, max_length=100)

    @field_validator("title", "description", "department")
    @classmethod
    def _strip(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Field must not be blank")
        return cleaned


class TicketOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str
    status: TicketStatus
    priority: TicketPriority
    department: str
    user_id: int
    assigned_to: int | None = None
    resolved_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class TicketDetailOut(TicketOut):
    requester: ProfileSummary | None = None
    assignee: ProfileSummary | None = None


class StatusUpdate(BaseModel):
    status: TicketStatus


class AssignmentUpdate(BaseModel):
    assigned_to: int | None = None


class CommentCreate(BaseModel):
    content: str = Field(max_length=10000)
    is_internal: bool = False


class CommentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    ticket_id: int
    user_id: int
    content: str
    is_internal: bool
    created_at: datetime | None = None
    author: ProfileSummary | None = None


class TicketUpdateResult(BaseModel):
    ticket: TicketDetailOut
    comments: list[CommentOut]


class TicketFilter(BaseModel):
    """Admin ticket listing filter; ``assigned_to: null`` selects unassigned tickets."""

    status: TicketStatus | None = None
    priority: TicketPriority | None = None
    department: str | None = Field(default=None, max_length=100)
    assigned_to: int | None = None
    user_id: int | None = None
    search: str | None = Field(default=None, max_length=255)
