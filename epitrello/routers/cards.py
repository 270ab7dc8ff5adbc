"""Cards API endpoints.

Provides card CRUD, the move protocol, comments and per-card history.
A card changes list only through POST /api/cards/{id}/move.
"""

from datetime import datetime
from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Response, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.card import Card
from ..models.comment import Comment
from ..models.user import User
from ..schemas.activity import ActivityResponse
from ..schemas.card import (
    CardCreate,
    CardPosition,
    CardResponse,
    CardUpdate,
    CommentCreate,
    CommentResponse,
    MoveCardRequest,
)
from ..services.activity_service import list_card_activity, record_board_activity, record_card_activity
from ..services.auth_service import get_current_user
from ..services.notification_service import NotificationService
from ..services.permission_service import BoardRole, PermissionService, resolve_membership
from ..services.reindex_service import TwoPhaseReindexer, next_position
from ..websocket.handlers import BoardRealtime, get_realtime
from ..websocket.manager import MessageType
from .lists import position_conflict

router = APIRouter(prefix="/api/cards", tags=["Cards"])

# Activity message per updatable field
FIELD_MESSAGES = {
    "title": "Title updated",
    "description": "Description updated",
    "labels": "Labels updated",
    "checklist": "Checklist updated",
    "assigned_members": "Assignees updated",
    "position": "Card reordered",
}


def _dump(card: Card) -> dict:
    return CardResponse.from_card(card).model_dump(mode="json", by_alias=True)


def _positions(cards: list[Card]) -> list[dict]:
    return [CardPosition(id=card.id, position=card.position).model_dump(mode="json") for card in cards]


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create a card",
    description="Append a card to a list, or place it at an explicit free position.",
    responses={409: {"description": "Position already taken"}},
)
async def create_card(
    card_data: CardCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
    realtime: BoardRealtime = Depends(get_realtime),
    x_connection_id: Optional[str] = Header(None),
) -> dict:
    board_list, board, _ = await PermissionService(db).require_list(
        card_data.list_id, current_user.id, BoardRole.MEMBER
    )

    position = card_data.position
    if position is None:
        position = await next_position(db, Card, "list_id", board_list.id)

    card = Card(
        title=card_data.title.strip(),
        description=card_data.description,
        list_id=board_list.id,
        position=position,
        labels=[],
        checklist=[],
        archived=False,
        assignees=[],
        comments=[],
    )
    db.add(card)
    try:
        await db.flush()
    except IntegrityError:
        raise position_conflict()

    record_card_activity(db, board.id, card.id, current_user, "Card created", card.title)
    await db.commit()

    payload = _dump(card)
    await realtime.broadcast_to_board(
        board.id,
        MessageType.CARD_CREATED.value,
        {"card": payload, "listId": str(board_list.id), "userId": str(current_user.id)},
        exclude_connection_id=x_connection_id,
    )
    return {"card": payload}


@router.get("", summary="List a list's cards", description="Sorted by position.")
async def list_cards(
    current_user: Annotated[User, Depends(get_current_user)],
    list_id: UUID = Query(..., alias="list", description="List ID"),
    db: AsyncSession = Depends(get_db),
) -> dict:
    await PermissionService(db).require_list(list_id, current_user.id, BoardRole.VIEWER)
    result = await db.execute(select(Card).where(Card.list_id == list_id).order_by(Card.position))
    return {"cards": [_dump(card) for card in result.scalars().all()]}


@router.get("/{card_id}", summary="Get a card")
async def get_card(
    card_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
) -> dict:
    card, _, _, _ = await PermissionService(db).require_card(card_id, current_user.id, BoardRole.VIEWER)
    return {"card": _dump(card)}


@router.patch(
    "/{card_id}",
    summary="Update a card",
    description=(
        "Update title, description, position, labels, due date, checklist, "
        "assignees or archived flag. Each changed field is logged to the card's history."
    ),
    responses={
        400: {"description": "An assignee cannot access the board"},
        409: {"description": "Position already taken"},
    },
)
async def update_card(
    card_id: UUID,
    updates: CardUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
    realtime: BoardRealtime = Depends(get_realtime),
    x_connection_id: Optional[str] = Header(None),
) -> dict:
    card, _, board, _ = await PermissionService(db).require_card(card_id, current_user.id, BoardRole.MEMBER)
    changes = updates.model_dump(exclude_unset=True)
    messages: list[str] = []
    new_assignees: list[User] = []

    for field_name in ("title", "description", "position", "labels", "checklist", "archived"):
        if field_name not in changes or changes[field_name] is None:
            continue
        value = changes[field_name]
        if field_name == "title":
            value = value.strip()
        if value != getattr(card, field_name):
            setattr(card, field_name, value)
            if field_name in FIELD_MESSAGES:
                messages.append(FIELD_MESSAGES[field_name])

    if "due_date" in changes and changes["due_date"] != card.due_date:
        card.due_date = changes["due_date"]
        messages.append("Due date set" if card.due_date else "Due date cleared")

    if changes.get("assigned_members") is not None:
        wanted = list(dict.fromkeys(changes["assigned_members"]))
        result = await db.execute(select(User).where(User.id.in_(wanted)))
        users = {user.id: user for user in result.scalars().all()}
        for user_id in wanted:
            user = users.get(user_id)
            if user is None or resolve_membership(board.owner_id, board.members, user_id) is None:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Assignees must be board members",
                )
        current_ids = {user.id for user in card.assignees}
        if set(wanted) != current_ids:
            new_assignees = [users[user_id] for user_id in wanted if user_id not in current_ids]
            card.assignees = [users[user_id] for user_id in wanted]
            messages.append(FIELD_MESSAGES["assigned_members"])

    for message in messages:
        record_card_activity(db, board.id, card.id, current_user, message, card.title)
    notifications = NotificationService.notify_card_assigned(
        db, card, board, [user.id for user in new_assignees], current_user
    )
    if messages:
        card.updated_at = datetime.utcnow()

    try:
        await db.flush()
    except IntegrityError:
        raise position_conflict()
    await db.commit()

    payload = _dump(card)
    await realtime.broadcast_to_board(
        board.id,
        MessageType.CARD_UPDATED.value,
        {"card": payload, "userId": str(current_user.id)},
        exclude_connection_id=x_connection_id,
    )
    await NotificationService.deliver(realtime, notifications)
    return {"card": payload}


@router.delete("/{card_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a card")
async def delete_card(
    card_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
    realtime: BoardRealtime = Depends(get_realtime),
    x_connection_id: Optional[str] = Header(None),
) -> Response:
    card, board_list, board, _ = await PermissionService(db).require_card(
        card_id, current_user.id, BoardRole.MEMBER
    )
    await db.delete(card)
    await db.commit()

    await realtime.broadcast_to_board(
        board.id,
        MessageType.CARD_DELETED.value,
        {"cardId": str(card_id), "listId": str(board_list.id), "userId": str(current_user.id)},
        exclude_connection_id=x_connection_id,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{card_id}/move",
    summary="Move a card",
    description=(
        "Move a card to `position` in `targetListId` (possibly its own list). "
        "The client sends both lists' post-move order; siblings are re-ranked "
        "around the moved card in two phases."
    ),
    responses={
        409: {"description": "Concurrent change; refetch and retry"},
        503: {"description": "Move timed out, retry"},
    },
)
async def move_card(
    card_id: UUID,
    move: MoveCardRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
    realtime: BoardRealtime = Depends(get_realtime),
    x_connection_id: Optional[str] = Header(None),
) -> dict:
    permissions = PermissionService(db)
    card, source_list, source_board, _ = await permissions.require_card(card_id, current_user.id, BoardRole.MEMBER)
    target_list, target_board, _ = await permissions.require_list(
        move.target_list_id, current_user.id, BoardRole.MEMBER
    )
    same_list = source_list.id == target_list.id

    result = await TwoPhaseReindexer(db, Card, "list_id").move(
        card.id,
        source_list.id,
        target_list.id,
        move.position,
        move.source_list_card_ids,
        move.target_list_card_ids,
    )
    card = result.entity

    if same_list:
        record_card_activity(db, target_board.id, card.id, current_user, "Card reordered", card.title)
    else:
        details = f'from "{source_list.title}" to "{target_list.title}"'
        record_card_activity(db, target_board.id, card.id, current_user, f"Moved {details}", card.title)
        record_board_activity(
            db, target_board.id, current_user, "moved card", "card", card.id, card.title, details=details
        )
    await db.commit()

    payload = _dump(card)
    event = {
        "card": payload,
        "sourceListId": str(source_list.id),
        "targetListId": str(target_list.id),
        "sourceListCardIds": [str(i) for i in move.source_list_card_ids],
        "targetListCardIds": [str(i) for i in move.target_list_card_ids],
        "sourceCards": _positions(result.source_siblings),
        "targetCards": _positions(result.target_siblings),
        "userId": str(current_user.id),
    }
    await realtime.broadcast_to_board(
        source_board.id, MessageType.CARD_MOVED.value, event, exclude_connection_id=x_connection_id
    )
    if target_board.id != source_board.id:
        await realtime.broadcast_to_board(
            target_board.id, MessageType.CARD_MOVED.value, event, exclude_connection_id=x_connection_id
        )
    return {"card": payload}


@router.post(
    "/{card_id}/comments",
    status_code=status.HTTP_201_CREATED,
    summary="Comment on a card",
    description="Add a comment. Assignees are notified and @username mentions notify board users.",
)
async def add_comment(
    card_id: UUID,
    comment_data: CommentCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
    realtime: BoardRealtime = Depends(get_realtime),
    x_connection_id: Optional[str] = Header(None),
) -> dict:
    card, _, board, _ = await PermissionService(db).require_card(card_id, current_user.id, BoardRole.MEMBER)

    text = comment_data.text.strip()
    if not text:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Comment text is required")

    comment = Comment(card_id=card.id, author_id=current_user.id, text=text)
    card.comments.append(comment)
    record_card_activity(db, board.id, card.id, current_user, "Comment added", card.title)
    notifications = await NotificationService.notify_comment(db, card, board, text, current_user)
    await db.flush()
    await db.commit()

    payload = _dump(card)
    await realtime.broadcast_to_board(
        board.id,
        MessageType.CARD_UPDATED.value,
        {"card": payload, "userId": str(current_user.id)},
        exclude_connection_id=x_connection_id,
    )
    await NotificationService.deliver(realtime, notifications)
    comment_payload = CommentResponse(
        id=comment.id, text=comment.text, author=comment.author_id, created_at=comment.created_at
    ).model_dump(mode="json", by_alias=True)
    return {"card": payload, "comment": comment_payload}


@router.get("/{card_id}/activity", summary="Card history", description="Newest first.")
async def get_card_activity(
    card_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    before: Optional[datetime] = Query(None, description="Only entries strictly older than this"),
    limit: Optional[int] = Query(None, description="Page size, clamped to 1..100"),
    db: AsyncSession = Depends(get_db),
) -> dict:
    card, _, _, _ = await PermissionService(db).require_card(card_id, current_user.id, BoardRole.VIEWER)
    entries = await list_card_activity(db, card.id, before=before, limit=limit)
    return {"activity": [ActivityResponse.model_validate(e).model_dump(mode="json", by_alias=True) for e in entries]}
