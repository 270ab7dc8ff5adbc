"""Notification service for creating and delivering notifications.

Provides business logic for notification management, including:
- Creating notifications for card assignment, comments and @mentions
- Delivering notifications via WebSocket after the transaction commits
"""

import logging
import re
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.board import Board
from ..models.card import Card
from ..models.notification import Notification
from ..models.user import User
from ..schemas.notification import NotificationResponse, NotificationType
from .permission_service import resolve_membership

logger = logging.getLogger(__name__)

MENTION_PATTERN = re.compile(r"(?<![\w@])@([A-Za-z0-9_](?:[A-Za-z0-9_.-]*[A-Za-z0-9_])?)")


def extract_mentions(text: str) -> list[str]:
    """Return the distinct @usernames in a text, lower-cased, in order of appearance."""
    seen = []
    for match in MENTION_PATTERN.finditer(text or ""):
        username = match.group(1).lower()
        if username not in seen:
            seen.append(username)
    return seen


def serialize_notification(notification: Notification) -> dict:
    return NotificationResponse.model_validate(notification).model_dump(mode="json", by_alias=True)


class NotificationService:
    """
    Service for managing notifications.

    Creation only adds rows to the session. Callers commit and then call
    `deliver` so recipients never see a notification that was rolled back.
    """

    @staticmethod
    def create_notification(
        db: AsyncSession,
        recipient_id: UUID,
        type: NotificationType,
        title: str,
        message: str,
        actor: Optional[User] = None,
        board_id: Optional[UUID] = None,
        card_id: Optional[UUID] = None,
    ) -> Optional[Notification]:
        """
        Create a notification for one recipient.

        Returns:
            The notification, or None when the recipient is the actor
        """
        if actor is not None and actor.id == recipient_id:
            return None

        notification = Notification(
            recipient_id=recipient_id,
            type=type.value,
            title=title,
            message=message[:500],
            board_id=board_id,
            card_id=card_id,
            actor_id=actor.id if actor else None,
            actor=actor,
            read=False,
        )
        db.add(notification)
        return notification

    @staticmethod
    def create_notifications(
        db: AsyncSession,
        recipient_ids: Iterable[UUID],
        type: NotificationType,
        title: str,
        message: str,
        actor: Optional[User] = None,
        board_id: Optional[UUID] = None,
        card_id: Optional[UUID] = None,
    ) -> list[Notification]:
        notifications = []
        for recipient_id in dict.fromkeys(recipient_ids):
            notification = NotificationService.create_notification(
                db, recipient_id, type, title, message, actor, board_id, card_id
            )
            if notification is not None:
                notifications.append(notification)
        return notifications

    @staticmethod
    def notify_card_assigned(
        db: AsyncSession,
        card: Card,
        board: Board,
        assignee_ids: Iterable[UUID],
        actor: User,
    ) -> list[Notification]:
        """Notify users newly assigned to a card."""
        return NotificationService.create_notifications(
            db,
            assignee_ids,
            NotificationType.CARD_ASSIGNED,
            title="You were assigned to a card",
            message=f'{actor.username} assigned you to "{card.title}" on {board.title}',
            actor=actor,
            board_id=board.id,
            card_id=card.id,
        )

    @staticmethod
    async def notify_comment(
        db: AsyncSession,
        card: Card,
        board: Board,
        text: str,
        actor: User,
    ) -> list[Notification]:
        """
        Notify mentioned users and card assignees about a new comment.

        Mentions only reach users who can view the board. A mentioned
        assignee gets the mention, not both.
        """
        mentioned_ids: list[UUID] = []
        usernames = extract_mentions(text)
        if usernames:
            result = await db.execute(select(User).where(func.lower(User.username).in_(usernames)))
            for user in result.scalars().all():
                if resolve_membership(board.owner_id, board.members, user.id) is not None:
                    mentioned_ids.append(user.id)

        preview = text if len(text) <= 120 else text[:117] + "..."
        notifications = NotificationService.create_notifications(
            db,
            mentioned_ids,
            NotificationType.MENTION,
            title="You were mentioned",
            message=f'{actor.username} mentioned you on "{card.title}": {preview}',
            actor=actor,
            board_id=board.id,
            card_id=card.id,
        )

        assignee_ids = [user.id for user in card.assignees if user.id not in mentioned_ids]
        notifications.extend(
            NotificationService.create_notifications(
                db,
                assignee_ids,
                NotificationType.COMMENT,
                title="New comment",
                message=f'{actor.username} commented on "{card.title}": {preview}',
                actor=actor,
                board_id=board.id,
                card_id=card.id,
            )
        )
        return notifications

    @staticmethod
    async def deliver(realtime, notifications: Iterable[Notification]) -> int:
        """
        Push committed notifications to their recipients' connections.

        Returns:
            Number of connections reached
        """
        delivered = 0
        for notification in notifications:
            logger.info(
                f"Delivering notification to user {notification.recipient_id}: {notification.type}"
            )
            delivered += await realtime.broadcast_to_user(
                notification.recipient_id,
                "notification:new",
                {"notification": serialize_notification(notification)},
            )
        return delivered
