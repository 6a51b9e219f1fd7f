from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from helpdesk.core.config import settings
from helpdesk.schemas.auth import normalize_email

Role = Literal["user", "agent", "admin"]


class ProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    full_name: str
    avatar_url: str | None = None
    role: Role
    department: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ProfileSummary(BaseModel):
    """Display identity embedded in tickets and comments."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    full_name: str
    avatar_url: str | None = None
    role: Role | None = None


class ProfileUpdate(BaseModel):
    full_name: str | None = Field(default=None, min_length=3, max_length=255)
    avatar_url: str | None = Field(default=None, max_length=1024)

    @field_validator("full_name")
    @classmethod
    def _strip_name(cls, value: str | None) -> str | None:
        return value.strip() if value is not None else None

    @field_validator("avatar_url")
    @classmethod
    def _avatar(cls, value: str | None) -> str | None:
        if value is None:
            return None
        cleaned = value.strip()
        if not cleaned:
            return None
        if not cleaned.startswith(("http://", "https://")):
            raise ValueError("Invalid URL")
        return cleaned


class RoleUpdate(BaseModel):
    role: Role


class AccountCreate(BaseModel):
    full_name: str = Field(min_length=3, max_length=255)
    email: str
    password: str
    confirm_password: str | None = None

    @field_validator("email")
    @classmethod
    def _email(cls, value: str) -> str:
        return normalize_email(value)

    @field_validator("password")
    @classmethod
    def _password(cls, value: str) -> str:
        if len(value) < settings.MIN_PASSWORD_LENGTH:
            raise ValueError(
                f"Password must have at least {settings.MIN_PASSWORD_LENGTH} characters"
            )
        return value

    @model_validator(mode="after")
    def _passwords_match(self) -> "AccountCreate":
        if self.confirm_password is not None and self.confirm_password != self.password:
            raise ValueError("Passwords do not match")
        return self


class UserRegistration(AccountCreate):
    role: Role = "user"
    department: str | None = Field(default=None, max_length=100)

    @field_validator("department")
    @classmethod
    def _department(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class SetupStatus(BaseModel):
    available: bool


class ProfileFilter(BaseModel):
    role: Literal["user", "agent", "admin", "all"] | None = None
    department: str | None = Field(default=None, max_length=100)
    search: str | None = Field(default=None, max_length=255)
