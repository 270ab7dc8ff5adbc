"""Comment SQLAlchemy model (append-only card comments)."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Text, Uuid
from sqlalchemy.orm import relationship

from ..database import Base


class Comment(Base):
    """A comment on a card. Immutable once created."""

    __tablename__ = "Comments"

    id = Column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )
    card_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("Cards.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    author_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("Users.id", ondelete="SET NULL"),
        nullable=True,
    )
    text = Column(
        Text,
        nullable=False,
    )
    created_at = Column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )

    card = relationship("Card", back_populates="comments")

    def __repr__(self) -> str:
        """String representation of Comment."""
        return f"<Comment(id={self.id}, card_id={self.card_id})>"
