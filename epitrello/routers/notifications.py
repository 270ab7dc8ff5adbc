"""Notifications API endpoints.

Provides endpoints for reading and managing the caller's notifications.
All endpoints require authentication.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.notification import Notification
from ..models.user import User
from ..schemas.notification import NotificationListResponse, NotificationResponse, UnreadCountResponse
from ..services.auth_service import get_current_user

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


async def _unread_count(db: AsyncSession, user_id: UUID) -> int:
    result = await db.execute(
        select(func.count(Notification.id)).where(
            Notification.recipient_id == user_id,
            Notification.read.is_(False),
        )
    )
    return result.scalar() or 0


async def _get_own_notification(db: AsyncSession, notification_id: UUID, user_id: UUID) -> Notification:
    result = await db.execute(select(Notification).where(Notification.id == notification_id))
    notification = result.scalar_one_or_none()
    if notification is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    if notification.recipient_id != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return notification


@router.get(
    "",
    response_model=NotificationListResponse,
    summary="List user notifications",
    description="Newest first, with the total matching count and the unread count.",
)
async def list_notifications(
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
    limit: int = Query(20, ge=1, le=100, description="Maximum number of records to return"),
    offset: int = Query(0, ge=0, description="Number of records to skip"),
    unread_only: bool = Query(False, alias="unreadOnly", description="Return only unread notifications"),
) -> NotificationListResponse:
    conditions = [Notification.recipient_id == current_user.id]
    if unread_only:
        conditions.append(Notification.read.is_(False))

    result = await db.execute(
        select(Notification)
        .where(*conditions)
        .order_by(Notification.created_at.desc())
        .offset(offset)
        .limit(limit)
    )
    notifications = result.scalars().unique().all()

    total = (await db.execute(select(func.count(Notification.id)).where(*conditions))).scalar() or 0

    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        total=total,
        unread_count=await _unread_count(db, current_user.id),
    )


@router.get("/unread-count", response_model=UnreadCountResponse, summary="Count unread notifications")
async def get_unread_count(
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
) -> UnreadCountResponse:
    return UnreadCountResponse(unread_count=await _unread_count(db, current_user.id))


@router.patch(
    "/{notification_id}/read",
    summary="Mark a notification as read",
    responses={403: {"description": "Not the recipient"}, 404: {"description": "Not found"}},
)
async def mark_as_read(
    notification_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
) -> dict:
    notification = await _get_own_notification(db, notification_id, current_user.id)
    notification.read = True
    await db.commit()
    return {
        "notification": NotificationResponse.model_validate(notification).model_dump(mode="json", by_alias=True)
    }


@router.post("/mark-all-read", summary="Mark all notifications as read")
async def mark_all_as_read(
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
) -> dict:
    result = await db.execute(
        update(Notification)
        .where(Notification.recipient_id == current_user.id, Notification.read.is_(False))
        .values(read=True)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return {"updated": result.rowcount}


@router.delete(
    "/{notification_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a notification",
)
async def delete_notification(
    notification_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
) -> Response:
    notification = await _get_own_notification(db, notification_id, current_user.id)
    await db.delete(notification)
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
