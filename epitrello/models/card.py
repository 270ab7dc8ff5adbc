"""Card SQLAlchemy model."""

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from ..database import Base

card_assignees = Table(
    "CardAssignees",
    Base.metadata,
    Column("card_id", Uuid(as_uuid=True), ForeignKey("Cards.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Uuid(as_uuid=True), ForeignKey("Users.id", ondelete="CASCADE"), primary_key=True),
)


class Card(Base):
    """
    Card model, the lowest level of the hierarchy: Board > Lists > Cards.

    A card's list_id and position move together under the move protocol;
    (list_id, position) is unique.

    Attributes:
        id: Unique identifier (UUID)
        list_id: FK to the parent list
        title: Card title
        description: Card description
        position: Ordering key within the list
        labels: [{color, text}]
        due_date: Optional due date
        checklist: [{text, completed}]
        archived: Whether the card is archived
    """

    __tablename__ = "Cards"
    __table_args__ = (
        UniqueConstraint("list_id", "position", name="uq_cards_list_position"),
    )

    id = Column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )
    list_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("Lists.id", ondelete="CASCADE"),
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
    position = Column(
        Integer,
        nullable=False,
    )
    labels = Column(
        JSON,
        nullable=False,
        default=list,
    )
    due_date = Column(
        DateTime,
        nullable=True,
    )
    checklist = Column(
        JSON,
        nullable=False,
        default=list,
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

    assignees = relationship(
        "User",
        secondary=card_assignees,
        lazy="selectin",
    )
    comments = relationship(
        "Comment",
        back_populates="card",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="Comment.created_at",
    )

    def __repr__(self) -> str:
        """String representation of Card."""
        return f"<Card(id={self.id}, list_id={self.list_id}, position={self.position})>"
