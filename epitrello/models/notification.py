"""Notification SQLAlchemy model."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import relationship

from ..database import Base


class Notification(Base):
    """
    A notification delivered to one user.

    Attributes:
        recipient_id: FK to the receiving user
        type: card_assigned, mention or comment
        title: Short title
        message: Notification body
        board_id: Related board, if any
        card_id: Related card, if any
        actor_id: User who triggered the notification
        read: Whether the recipient has read it
    """

    __tablename__ = "Notifications"
    __table_args__ = (
        Index("ix_notifications_recipient_read_created", "recipient_id", "read", "created_at"),
    )

    id = Column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )
    recipient_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("Users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type = Column(
        String(30),
        nullable=False,
    )
    title = Column(
        String(200),
        nullable=False,
    )
    message = Column(
        String(500),
        nullable=False,
    )
    board_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("Boards.id", ondelete="CASCADE"),
        nullable=True,
    )
    card_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("Cards.id", ondelete="SET NULL"),
        nullable=True,
    )
    actor_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("Users.id", ondelete="SET NULL"),
        nullable=True,
    )
    read = Column(
        Boolean,
        nullable=False,
        default=False,
    )
    created_at = Column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )

    actor = relationship("User", foreign_keys=[actor_id], lazy="joined")

    def __repr__(self) -> str:
        """String representation of Notification."""
        return f"<Notification(id={self.id}, recipient_id={self.recipient_id}, type={self.type})>"
