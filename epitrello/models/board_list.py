"""List SQLAlchemy model (a column of cards on a board)."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint, Uuid

from ..database import Base


class BoardList(Base):
    """
    A list of cards within a board.

    Positions are unique per board. They are dense-ish integers used only
    for ordering; negative values exist only transiently while a reorder
    is staging.
    """

    __tablename__ = "Lists"
    __table_args__ = (
        UniqueConstraint("board_id", "position", name="uq_lists_board_position"),
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
        index=True,
    )

    title = Column(
        String(120),
        nullable=False,
    )
    position = Column(
        Integer,
        nullable=False,
    )
    archived = Column(
        Boolean,
        nullable=False,
        default=False,
    )

    created_at = Column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation of BoardList."""
        return f"<BoardList(id={self.id}, board_id={self.board_id}, position={self.position})>"
