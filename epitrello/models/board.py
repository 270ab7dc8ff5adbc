"""Board and BoardMember SQLAlchemy models."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from ..database import Base

DEFAULT_BACKGROUND = {"type": "color", "value": "#0f172a", "thumbnail": ""}


def default_background() -> dict:
    return dict(DEFAULT_BACKGROUND)


class Board(Base):
    """
    Board model, the top of the hierarchy: Board > Lists > Cards.

    The owner is stored on the board itself and is never duplicated in
    the members table; the "owner" role is derived from owner_id.

    Attributes:
        id: Unique identifier (UUID)
        title: Board title
        description: Free text description
        owner_id: FK to the owning user
        background: {type: color|image, value, thumbnail}
        created_at: Timestamp when board was created
        updated_at: Timestamp when board was last updated
    """

    __tablename__ = "Boards"

    id = Column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )
    owner_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("Users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    title = Column(
        String(120),
        nullable=False,
    )
    description = Column(
        Text,
        nullable=False,
        default="",
    )
    background = Column(
        JSON,
        nullable=False,
        default=default_background,
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
        index=True,
    )

    owner = relationship("User", lazy="joined")
    members = relationship(
        "BoardMember",
        back_populates="board",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="BoardMember.created_at",
    )

    def __repr__(self) -> str:
        """String representation of Board."""
        return f"<Board(id={self.id}, title={self.title})>"


class BoardMember(Base):
    """
    Membership of a non-owner user on a board.

    Attributes:
        board_id: FK to the board
        user_id: FK to the member user
        role: admin, member or viewer
        created_at: Timestamp when membership was created
    """

    __tablename__ = "BoardMembers"
    __table_args__ = (
        UniqueConstraint("board_id", "user_id", name="uq_board_members_board_user"),
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
    user_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("Users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role = Column(
        String(20),
        nullable=False,
        default="member",
    )
    created_at = Column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )

    board = relationship("Board", back_populates="members")
    user = relationship("User", lazy="joined")

    def __repr__(self) -> str:
        """String representation of BoardMember."""
        return f"<BoardMember(board_id={self.board_id}, user_id={self.user_id}, role={self.role})>"
