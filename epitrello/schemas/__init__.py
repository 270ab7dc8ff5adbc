"""Pydantic request/response schemas."""

from .activity import ActivityResponse
from .board import (
    Background,
    BoardCreate,
    BoardMemberResponse,
    BoardResponse,
    BoardUpdate,
    MemberAdd,
    MemberRole,
    MemberRoleUpdate,
)
from .board_list import ListCreate, ListResponse, ListUpdate, ReorderListsRequest
from .card import (
    CardCreate,
    CardPosition,
    CardResponse,
    CardUpdate,
    CommentCreate,
    CommentResponse,
    MoveCardRequest,
)
from .notification import NotificationListResponse, NotificationResponse, NotificationType
from .user import AuthResponse, PasswordChange, UserCreate, UserResponse, UserSummary, UserUpdate

__all__ = [
    "ActivityResponse",
    "AuthResponse",
    "Background",
    "BoardCreate",
    "BoardMemberResponse",
    "BoardResponse",
    "BoardUpdate",
    "CardCreate",
    "CardPosition",
    "CardResponse",
    "CardUpdate",
    "CommentCreate",
    "CommentResponse",
    "ListCreate",
    "ListResponse",
    "ListUpdate",
    "MemberAdd",
    "MemberRole",
    "MemberRoleUpdate",
    "MoveCardRequest",
    "NotificationListResponse",
    "NotificationResponse",
    "NotificationType",
    "ReorderListsRequest",
    "PasswordChange",
    "UserCreate",
    "UserResponse",
    "UserSummary",
    "UserUpdate",
]
