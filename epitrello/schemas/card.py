"""Pydantic schemas for Card validation, comments and the move protocol."""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from pydantic import Field, field_validator

from .common import CamelModel


class Label(CamelModel):
    """A colored card label."""

    color: str = Field(..., max_length=32, examples=["#22c55e"])
    text: str = Field("", max_length=100)


class ChecklistItem(CamelModel):
    """A single checklist entry."""

    text: str = Field(..., min_length=1, max_length=500)
    completed: bool = False


class CardCreate(CamelModel):
    """Schema for creating a card. Position defaults to the end of the list."""

    title: str = Field(..., min_length=1, max_length=120, examples=["Write release notes"])
    list_id: UUID = Field(..., alias="list", description="Parent list ID")
    description: str = Field("", max_length=20000)
    position: Optional[int] = Field(None, ge=0, description="Explicit position")


class CardUpdate(CamelModel):
    """
    Schema for updating a card.

    Moving to another list is not an update; use the move endpoint.
    """

    title: Optional[str] = Field(None, min_length=1, max_length=120)
    description: Optional[str] = Field(None, max_length=20000)
    position: Optional[int] = Field(None, ge=0)
    labels: Optional[list[Label]] = None
    due_date: Optional[datetime] = None
    checklist: Optional[list[ChecklistItem]] = None
    assigned_members: Optional[list[UUID]] = None
    archived: Optional[bool] = None

    @field_validator("due_date")
    @classmethod
    def due_date_naive_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # Stored timestamps are naive UTC
        if value is not None and value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value


class CommentCreate(CamelModel):
    """Schema for adding a comment to a card."""

    text: str = Field(..., min_length=1, max_length=5000)


class CommentResponse(CamelModel):
    """Comment representation."""

    id: UUID
    text: str
    author: Optional[UUID] = None
    created_at: datetime


class CardResponse(CamelModel):
    """Card representation."""

    id: UUID
    title: str
    description: str
    list_id: UUID = Field(..., serialization_alias="list")
    position: int
    labels: list[Label] = Field(default_factory=list)
    due_date: Optional[datetime] = None
    checklist: list[ChecklistItem] = Field(default_factory=list)
    assigned_members: list[UUID] = Field(default_factory=list)
    comments: list[CommentResponse] = Field(default_factory=list)
    archived: bool = False
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_card(cls, card) -> "CardResponse":
        return cls(
            id=card.id,
            title=card.title,
            description=card.description or "",
            list_id=card.list_id,
            position=card.position,
            labels=card.labels or [],
            due_date=card.due_date,
            checklist=card.checklist or [],
            assigned_members=[user.id for user in card.assignees],
            comments=[
                CommentResponse(
                    id=comment.id,
                    text=comment.text,
                    author=comment.author_id,
                    created_at=comment.created_at,
                )
                for comment in card.comments
            ],
            archived=bool(card.archived),
            created_at=card.created_at,
            updated_at=card.updated_at,
        )


class MoveCardRequest(CamelModel):
    """
    Move a card to a position, possibly in another list.

    The client sends the post-move order of both lists. The moved card
    lands exactly at `position`; its siblings are ranked around it.
    """

    target_list_id: UUID = Field(..., description="List the card ends up in")
    position: int = Field(..., ge=0, description="Final position in the target list")
    source_list_card_ids: list[UUID] = Field(
        default_factory=list,
        description="Source list card IDs after the move, excluding the moved card",
    )
    target_list_card_ids: list[UUID] = Field(
        default_factory=list,
        description="Target list card IDs after the move, including the moved card",
    )


class CardPosition(CamelModel):
    """Authoritative position of one card after a reindex."""

    id: UUID
    position: int
