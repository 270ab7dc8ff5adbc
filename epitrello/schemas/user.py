"""Pydantic schemas for User model validation."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import EmailStr, Field

from .common import CamelModel


class UserCreate(CamelModel):
    """Schema for creating a new user (registration)."""

    username: str = Field(
        ...,
        min_length=3,
        max_length=50,
        pattern=r"^[A-Za-z0-9_.-]+$",
        description="Unique handle, used for @mentions",
        examples=["alice"],
    )
    email: EmailStr = Field(
        ...,
        description="User's email address",
        examples=["alice@example.com"],
    )
    password: str = Field(
        ...,
        min_length=8,
        max_length=128,
        description="User's password (will be hashed)",
        examples=["SecureP@ssw0rd!"],
    )


class UserSummary(CamelModel):
    """Minimal user information embedded in boards, members and notifications."""

    id: UUID = Field(..., description="User ID")
    username: str = Field(..., description="Username")
    avatar_url: Optional[str] = Field(None, description="URL to user's avatar image")


class UserResponse(UserSummary):
    """Schema for user response (public data only)."""

    email: str = Field(..., description="User's email address")
    created_at: Optional[datetime] = Field(None, description="When the user was created")
    updated_at: Optional[datetime] = Field(None, description="When the user was last updated")


class AuthResponse(CamelModel):
    """Registration response: the new user plus a token so the client is logged in."""

    user: UserResponse
    access_token: str
    token_type: str = "bearer"


class UserUpdate(CamelModel):
    """Schema for updating the caller's profile."""

    username: str = Field(
        ...,
        min_length=3,
        max_length=50,
        pattern=r"^[A-Za-z0-9_.-]+$",
        description="New handle",
    )
    email: EmailStr = Field(..., description="New email address")
    remove_avatar: bool = Field(False, description="Clear the stored avatar URL")


class PasswordChange(CamelModel):
    """Schema for changing the caller's password."""

    current_password: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., min_length=8, max_length=128)
