"""User SQLAlchemy model for authentication and user management."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String, Uuid

from ..database import Base


class User(Base):
    """
    User model representing application users.

    Attributes:
        id: Unique identifier (UUID)
        username: Unique handle, also used for @mentions
        email: User's email address (unique)
        password_hash: Hashed password for authentication
        avatar_url: URL to user's avatar image
        created_at: Timestamp when user was created
        updated_at: Timestamp when user was last updated
    """

    __tablename__ = "Users"

    id = Column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )

    username = Column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
    )
    email = Column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    password_hash = Column(
        String(255),
        nullable=False,
    )
    avatar_url = Column(
        String(500),
        nullable=True,
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
        """String representation of User."""
        return f"<User(id={self.id}, username={self.username})>"
