"""Pydantic schemas for Notification model."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import Field

from .common import CamelModel
from .user import UserSummary


class NotificationType(str, Enum):
    """Notification type enumeration."""

    CARD_ASSIGNED = "card_assigned"
    MENTION = "mention"
    COMMENT = "comment"


class NotificationResponse(CamelModel):
    """Notification representation."""

    id: UUID
    type: NotificationType
    title: str
    message: str
    board_id: Optional[UUID] = Field(None, serialization_alias="board")
    card_id: Optional[UUID] = Field(None, serialization_alias="card")
    actor: Optional[UserSummary] = None
    read: bool
    created_at: datetime


class NotificationListResponse(CamelModel):
    """A page of notifications plus counters."""

    notifications: list[NotificationResponse]
    total: int
    unread_count: int


class UnreadCountResponse(CamelModel):
    """Unread notification counter."""

    unread_count: int
