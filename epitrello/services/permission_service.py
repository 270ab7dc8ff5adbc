"""Permission service for board roles.

Permission Model:
- Owner: derived from Board.owner_id, never stored as a member row
- Admin: manages board settings and members
- Member: creates, edits, moves and deletes lists and cards
- Viewer: read-only access

Roles are totally ordered (viewer < member < admin < owner) and every check
is "at least role X". Board deletion and member removal are the exceptions:
they are owner-only and refused to admins.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, Optional, Union
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.board import Board
from ..models.board_list import BoardList
from ..models.card import Card


class BoardRole(IntEnum):
    """Board roles in ascending order of privilege."""

    VIEWER = 0
    MEMBER = 1
    ADMIN = 2
    OWNER = 3

    @property
    def label(self) -> str:
        return self.name.lower()

    @classmethod
    def from_label(cls, label: str) -> "BoardRole":
        return cls[label.upper()]


@dataclass(frozen=True)
class Owner:
    """The board owner."""

    @property
    def role(self) -> BoardRole:
        return BoardRole.OWNER


@dataclass(frozen=True)
class Member:
    """A non-owner member with a stored role."""

    role: BoardRole


Membership = Union[Owner, Member]


def resolve_membership(
    owner_id: UUID,
    members: Iterable,
    user_id: UUID,
) -> Optional[Membership]:
    """
    Resolve a user's membership on a board.

    Args:
        owner_id: The board's owner
        members: Membership rows exposing `user_id` and `role` (a label)
        user_id: The user being checked

    Returns:
        Owner(), Member(role), or None when the user has no access.
    """
    if user_id == owner_id:
        return Owner()
    for member in members:
        if member.user_id == user_id:
            return Member(BoardRole.from_label(member.role))
    return None


def has_permission(membership: Optional[Membership], required: BoardRole) -> bool:
    if membership is None:
        return False
    return membership.role >= required


def can_view(membership: Optional[Membership]) -> bool:
    return has_permission(membership, BoardRole.VIEWER)


def can_edit(membership: Optional[Membership]) -> bool:
    return has_permission(membership, BoardRole.MEMBER)


def can_manage(membership: Optional[Membership]) -> bool:
    return has_permission(membership, BoardRole.ADMIN)


def is_owner(membership: Optional[Membership]) -> bool:
    return isinstance(membership, Owner)


class PermissionService:
    """
    Loads boards, lists and cards and enforces the caller's board role.

    Each `require_*` method raises 404 when the entity does not exist and
    403 when the caller's role is below the required one.
    """

    def __init__(self, db: AsyncSession):
        """
        Initialize the PermissionService.

        Args:
            db: SQLAlchemy async database session
        """
        self.db = db

    async def get_board(self, board_id: UUID) -> Board:
        result = await self.db.execute(select(Board).where(Board.id == board_id))
        board = result.scalar_one_or_none()
        if board is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Board not found")
        return board

    @staticmethod
    def membership_for(board: Board, user_id: UUID) -> Optional[Membership]:
        return resolve_membership(board.owner_id, board.members, user_id)

    @staticmethod
    def check(membership: Optional[Membership], required: BoardRole) -> None:
        if not has_permission(membership, required):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

    async def require_board(
        self,
        board_id: UUID,
        user_id: UUID,
        required: BoardRole = BoardRole.VIEWER,
    ) -> tuple[Board, Membership]:
        """Load a board and require at least `required` on it."""
        board = await self.get_board(board_id)
        membership = self.membership_for(board, user_id)
        self.check(membership, required)
        return board, membership

    async def require_owner(self, board_id: UUID, user_id: UUID) -> Board:
        """Load a board and require the caller to be its owner."""
        board = await self.get_board(board_id)
        membership = self.membership_for(board, user_id)
        if not is_owner(membership):
            detail = "Forbidden" if membership is None else "Only the board owner can do this"
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
        return board

    async def require_list(
        self,
        list_id: UUID,
        user_id: UUID,
        required: BoardRole = BoardRole.VIEWER,
    ) -> tuple[BoardList, Board, Membership]:
        """Load a list with its board and require at least `required`."""
        result = await self.db.execute(select(BoardList).where(BoardList.id == list_id))
        board_list = result.scalar_one_or_none()
        if board_list is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="List not found")
        board, membership = await self.require_board(board_list.board_id, user_id, required)
        return board_list, board, membership

    async def require_card(
        self,
        card_id: UUID,
        user_id: UUID,
        required: BoardRole = BoardRole.VIEWER,
    ) -> tuple[Card, BoardList, Board, Membership]:
        """Load a card with its list and board and require at least `required`."""
        result = await self.db.execute(select(Card).where(Card.id == card_id))
        card = result.scalar_one_or_none()
        if card is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Card not found")
        board_list, board, membership = await self.require_list(card.list_id, user_id, required)
        return card, board_list, board, membership
