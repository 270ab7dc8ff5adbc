"""Board room authorization for WebSocket connections."""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ..database import async_session_maker
from ..models.board import Board
from ..services.permission_service import can_view, resolve_membership

logger = logging.getLogger(__name__)


async def check_board_access(user_id: UUID, board_id: UUID) -> bool:
    """
    Check if a user may join a board's room (viewer or above).

    Args:
        user_id: The user's UUID
        board_id: The board's UUID

    Returns:
        True if user has access, False otherwise (including missing boards)
    """
    try:
        async with async_session_maker() as db:
            result = await db.execute(select(Board).where(Board.id == board_id))
            board = result.scalar_one_or_none()
            if board is None:
                return False
            return can_view(resolve_membership(board.owner_id, board.members, user_id))
    except SQLAlchemyError as e:
        logger.error(f"[Room Auth] ERROR checking board access: {e}")
        return False
