"""Pydantic schemas for List validation and reordering."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from .common import CamelModel


class ListCreate(CamelModel):
    """Schema for creating a list. Position defaults to the end of the board."""

    title: str = Field(..., min_length=1, max_length=120, examples=["To do"])
    board_id: UUID = Field(..., alias="board", description="Parent board ID")
    position: Optional[int] = Field(None, ge=0, description="Explicit position")


class ListUpdate(CamelModel):
    """Schema for updating a list."""

    title: Optional[str] = Field(None, min_length=1, max_length=120)
    position: Optional[int] = Field(None, ge=0)
    archived: Optional[bool] = None


class ListResponse(CamelModel):
    """List representation."""

    id: UUID
    title: str
    board_id: UUID = Field(..., serialization_alias="board")
    position: int
    archived: bool
    created_at: datetime
    updated_at: datetime


class ReorderListsRequest(CamelModel):
    """Desired list order for a board, as an array of list IDs."""

    board_id: UUID = Field(..., description="Board whose lists are reordered")
    list_ids: list[UUID] = Field(..., description="List IDs in their new order")
