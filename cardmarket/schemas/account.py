"""Pydantic schemas for account registration and password change."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class RegisterRequest(BaseModel):
    """Registration payload.

    Credentials are optional at the schema level so that missing values get
    the same 400 error shape as other account rule violations.
    """

    email: str | None = Field(default=None, description="Account email address.")
    password: str | None = Field(default=None, description="Plain-text password to hash.")
    name: str | None = Field(default=None, description="Optional display name.")
    username: str | None = Field(default=None, description="Optional public username.")


class UserPublic(BaseModel):
    """Account fields safe to return to clients."""

    id: str
    email: str
    name: str | None = None
    username: str | None = None


class RegisterResponse(BaseModel):
    message: str = Field(..., description="Human-readable outcome.")
    user: UserPublic


class ChangePasswordRequest(BaseModel):
    current_password: str | None = Field(
        default=None,
        alias="currentPassword",
        description="The password currently set on the account.",
    )
    new_password: str | None = Field(
        default=None,
        alias="newPassword",
        description="Replacement password; must pass the strength rules.",
    )

    model_config = ConfigDict(populate_by_name=True)


class MessageResponse(BaseModel):
    message: str
