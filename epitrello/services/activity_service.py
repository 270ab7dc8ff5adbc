"""Activity log recording and paginated feeds.

Board-scoped entries form the board feed; card-scoped entries form a
card's history. Pagination is keyset-style on created_at and runs in SQL.
"""

import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..models.activity import ActivityEntry
from ..models.user import User

logger = logging.getLogger(__name__)

BOARD_SCOPE = "board"
CARD_SCOPE = "card"


def clamp_limit(limit: Optional[int]) -> int:
    """Clamp a requested page size to 1..activity_page_max."""
    if limit is None:
        return settings.activity_page_size
    return max(1, min(limit, settings.activity_page_max))


def record_board_activity(
    db: AsyncSession,
    board_id: UUID,
    actor: Optional[User],
    action: str,
    entity_type: str,
    entity_id: Optional[UUID] = None,
    entity_title: Optional[str] = None,
    details: Optional[str] = None,
) -> ActivityEntry:
    """Add a board feed entry to the session. Flushed with the caller's transaction."""
    entry = ActivityEntry(
        board_id=board_id,
        scope=BOARD_SCOPE,
        actor_id=actor.id if actor else None,
        actor=actor,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id else None,
        entity_title=entity_title,
        details=details,
    )
    db.add(entry)
    return entry


def record_card_activity(
    db: AsyncSession,
    board_id: UUID,
    card_id: UUID,
    actor: Optional[User],
    message: str,
    card_title: Optional[str] = None,
) -> ActivityEntry:
    """Add an entry to a card's history."""
    entry = ActivityEntry(
        board_id=board_id,
        card_id=card_id,
        scope=CARD_SCOPE,
        actor_id=actor.id if actor else None,
        actor=actor,
        action=message,
        entity_type="card",
        entity_id=str(card_id),
        entity_title=card_title,
        message=message,
    )
    db.add(entry)
    return entry


async def _page(db: AsyncSession, stmt, before: Optional[datetime], limit: Optional[int]) -> list[ActivityEntry]:
    if before is not None:
        if before.tzinfo is not None:
            # Stored timestamps are naive UTC
            before = before.astimezone(timezone.utc).replace(tzinfo=None)
        stmt = stmt.where(ActivityEntry.created_at < before)
    stmt = stmt.order_by(ActivityEntry.created_at.desc(), ActivityEntry.id.desc()).limit(clamp_limit(limit))
    result = await db.execute(stmt)
    return list(result.scalars().unique().all())


async def list_board_activity(
    db: AsyncSession,
    board_id: UUID,
    before: Optional[datetime] = None,
    limit: Optional[int] = None,
) -> list[ActivityEntry]:
    """Newest-first board feed, strictly older than `before` when given."""
    stmt = select(ActivityEntry).where(
        ActivityEntry.board_id == board_id,
        ActivityEntry.scope == BOARD_SCOPE,
    )
    return await _page(db, stmt, before, limit)


async def list_card_activity(
    db: AsyncSession,
    card_id: UUID,
    before: Optional[datetime] = None,
    limit: Optional[int] = None,
) -> list[ActivityEntry]:
    """Newest-first history of one card."""
    stmt = select(ActivityEntry).where(
        ActivityEntry.card_id == card_id,
        ActivityEntry.scope == CARD_SCOPE,
    )
    return await _page(db, stmt, before, limit)
