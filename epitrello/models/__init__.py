"""SQLAlchemy ORM models package."""

from .activity import ActivityEntry
from .board import Board, BoardMember
from .board_list import BoardList
from .card import Card, card_assignees
from .comment import Comment
from .notification import Notification
from .user import User

__all__ = [
    "ActivityEntry",
    "Board",
    "BoardList",
    "BoardMember",
    "Card",
    "Comment",
    "Notification",
    "User",
    "card_assignees",
]
