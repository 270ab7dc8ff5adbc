"""Pydantic schemas for Board and BoardMember validation."""

from datetime import datetime
from enum import Enum
from typing import Literal, Optional
from uuid import UUID

from pydantic import Field

from .common import CamelModel
from .user import UserSummary


class MemberRole(str, Enum):
    """Roles that can be stored on a membership row (owner is derived)."""

    ADMIN = "admin"
    MEMBER = "member"
    VIEWER = "viewer"


class Background(CamelModel):
    """Board background, a solid color or an image."""

    type: Literal["color", "image"] = Field("color", description="Background kind")
    value: str = Field(..., max_length=2048, description="Color hex or image URL")
    thumbnail: str = Field("", max_length=2048, description="Thumbnail URL for images")


class BoardCreate(CamelModel):
    """Schema for creating a board. The caller becomes its owner."""

    title: str = Field(
        ...,
        min_length=1,
        max_length=120,
        description="Board title",
        examples=["Sprint 12"],
    )
    description: str = Field(
        "",
        max_length=10000,
        description="Free text description",
    )
    background: Optional[Background] = Field(
        None,
        description="Board background, defaults to a dark color",
    )


class BoardUpdate(CamelModel):
    """Schema for updating board settings. All fields optional."""

    title: Optional[str] = Field(None, min_length=1, max_length=120)
    description: Optional[str] = Field(None, max_length=10000)
    background: Optional[Background] = None


class BoardMemberResponse(CamelModel):
    """A board member (the owner included) with its effective role."""

    user: UserSummary
    role: str = Field(..., description="owner, admin, member or viewer")


class BoardResponse(CamelModel):
    """Full board representation."""

    id: UUID
    title: str
    description: str
    owner_id: UUID
    owner: Optional[UserSummary] = None
    background: Background
    members: list[BoardMemberResponse] = Field(default_factory=list)
    role: Optional[str] = Field(None, description="The caller's effective role on this board")
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_board(cls, board, viewer_id: Optional[UUID] = None) -> "BoardResponse":
        """Build the response with the owner listed first among the members."""
        members = [BoardMemberResponse(user=UserSummary.model_validate(board.owner), role="owner")]
        members.extend(
            BoardMemberResponse(user=UserSummary.model_validate(member.user), role=member.role)
            for member in board.members
        )
        role = None
        if viewer_id is not None:
            role = next((m.role for m in members if m.user.id == viewer_id), None)
        return cls(
            id=board.id,
            title=board.title,
            description=board.description or "",
            owner_id=board.owner_id,
            owner=UserSummary.model_validate(board.owner),
            background=Background.model_validate(board.background),
            members=members,
            role=role,
            created_at=board.created_at,
            updated_at=board.updated_at,
        )


class MemberAdd(CamelModel):
    """Schema for adding a member to a board."""

    user_id: UUID = Field(..., description="User to add")
    role: MemberRole = Field(MemberRole.MEMBER, description="Role to grant")


class MemberRoleUpdate(CamelModel):
    """Schema for changing a member's role."""

    role: MemberRole = Field(..., description="New role")
