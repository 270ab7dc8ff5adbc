"""ActivityEntry SQLAlchemy model.

Activity is an append-only log table keyed by board (and optionally card)
rather than an array embedded in the parent row, so feeds are paginated
by the database.
"""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import relationship

from ..database import Base


class ActivityEntry(Base):
    """
    One immutable activity record.

    Attributes:
        board_id: Board the activity belongs to
        card_id: Card the activity belongs to (card-scoped entries only)
        scope: "board" for the board feed, "card" for a card's history
        actor_id: Acting user, None for system actions
        action: Short verb phrase ("created", "moved card", ...)
        entity_type: board, list, card or member
        entity_id: ID of the affected entity
        entity_title: Title/name of the affected entity at the time
        details: Optional free text ("from \"To do\" to \"Done\"")
        message: Human readable message for card-scoped entries
        created_at: When the entry was recorded
    """

    __tablename__ = "ActivityEntries"
    __table_args__ = (
        Index("ix_activity_board_scope_created", "board_id", "scope", "created_at"),
        Index("ix_activity_card_created", "card_id", "created_at"),
    )

    id = Column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )
    board_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("Boards.id", ondelete="CASCADE"),
        nullable=False,
    )
    card_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("Cards.id", ondelete="CASCADE"),
        nullable=True,
    )
    scope = Column(
        String(10),
        nullable=False,
        default="board",
    )
    actor_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("Users.id", ondelete="SET NULL"),
        nullable=True,
    )
    action = Column(
        String(100),
        nullable=False,
    )
    entity_type = Column(
        String(20),
        nullable=False,
    )
    entity_id = Column(
        String(64),
        nullable=True,
    )
    entity_title = Column(
        String(255),
        nullable=True,
    )
    details = Column(
        Text,
        nullable=True,
    )
    message = Column(
        Text,
        nullable=True,
    )
    created_at = Column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )

    actor = relationship("User", lazy="joined")

    def __repr__(self) -> str:
        """String representation of ActivityEntry."""
        return f"<ActivityEntry(id={self.id}, scope={self.scope}, action={self.action})>"
