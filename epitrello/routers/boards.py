"""Boards API endpoints.

Provides board CRUD, member management and the board activity feed.
Every mutation commits before broadcasting to the board room.
"""

from datetime import datetime
from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Response, status
from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.activity import ActivityEntry
from ..models.board import Board, BoardMember, default_background
from ..models.board_list import BoardList
from ..models.card import Card, card_assignees
from ..models.user import User
from ..schemas.activity import ActivityResponse
from ..schemas.board import (
    BoardCreate,
    BoardResponse,
    BoardUpdate,
    MemberAdd,
    MemberRoleUpdate,
)
from ..services.activity_service import list_board_activity, record_board_activity
from ..services.auth_service import get_current_user, get_user_by_id
from ..services.permission_service import BoardRole, PermissionService
from ..websocket.handlers import BoardRealtime, get_realtime
from ..websocket.manager import MessageType

router = APIRouter(prefix="/api/boards", tags=["Boards"])


def _dump(model) -> dict:
    return model.model_dump(mode="json", by_alias=True)


def _members_payload(board: Board) -> list[dict]:
    return [_dump(member) for member in BoardResponse.from_board(board).members]


def _find_member(board: Board, user_id: UUID) -> BoardMember:
    member = next((m for m in board.members if m.user_id == user_id), None)
    if member is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Member not found")
    return member


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create a board",
    description="Create a board. The caller becomes its owner.",
)
async def create_board(
    board_data: BoardCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
) -> dict:
    background = (
        board_data.background.model_dump() if board_data.background else default_background()
    )
    board = Board(
        title=board_data.title.strip(),
        description=board_data.description,
        background=background,
        owner_id=current_user.id,
        owner=current_user,
        members=[],
    )
    db.add(board)
    await db.flush()

    record_board_activity(db, board.id, current_user, "created", "board", board.id, board.title)
    await db.commit()

    return {"board": _dump(BoardResponse.from_board(board, current_user.id))}


@router.get(
    "",
    summary="List boards",
    description="Boards the caller owns or is a member of, most recently updated first.",
)
async def list_boards(
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
) -> dict:
    member_of = select(BoardMember.board_id).where(BoardMember.user_id == current_user.id)
    result = await db.execute(
        select(Board)
        .where(or_(Board.owner_id == current_user.id, Board.id.in_(member_of)))
        .order_by(Board.updated_at.desc())
    )
    boards = result.scalars().unique().all()
    return {"boards": [_dump(BoardResponse.from_board(board, current_user.id)) for board in boards]}


@router.get("/{board_id}", summary="Get a board")
async def get_board(
    board_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
) -> dict:
    board, _ = await PermissionService(db).require_board(board_id, current_user.id, BoardRole.VIEWER)
    return {"board": _dump(BoardResponse.from_board(board, current_user.id))}


@router.patch(
    "/{board_id}",
    summary="Update board settings",
    description="Change title, description or background. Requires admin.",
    responses={403: {"description": "Caller is not an admin"}},
)
async def update_board(
    board_id: UUID,
    updates: BoardUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
    realtime: BoardRealtime = Depends(get_realtime),
    x_connection_id: Optional[str] = Header(None),
) -> dict:
    board, _ = await PermissionService(db).require_board(board_id, current_user.id, BoardRole.ADMIN)

    if updates.title is not None and updates.title.strip() != board.title:
        new_title = updates.title.strip()
        record_board_activity(
            db, board.id, current_user, "renamed", "board", board.id, new_title,
            details=f'from "{board.title}" to "{new_title}"',
        )
        board.title = new_title
    if updates.description is not None and updates.description != board.description:
        board.description = updates.description
        record_board_activity(db, board.id, current_user, "updated description", "board", board.id, board.title)
    if updates.background is not None:
        background = updates.background.model_dump()
        if background != board.background:
            board.background = background
            record_board_activity(db, board.id, current_user, "changed background", "board", board.id, board.title)

    board.updated_at = datetime.utcnow()
    await db.commit()

    payload = _dump(BoardResponse.from_board(board))
    await realtime.broadcast_to_board(
        board.id,
        MessageType.BOARD_UPDATED.value,
        {"board": payload, "userId": str(current_user.id)},
        exclude_connection_id=x_connection_id,
    )
    return {"board": _dump(BoardResponse.from_board(board, current_user.id))}


@router.delete(
    "/{board_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a board",
    description="Delete a board with its lists, cards and activity. Owner only.",
    responses={403: {"description": "Caller is not the owner"}},
)
async def delete_board(
    board_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
    realtime: BoardRealtime = Depends(get_realtime),
    x_connection_id: Optional[str] = Header(None),
) -> Response:
    board = await PermissionService(db).require_owner(board_id, current_user.id)

    list_ids = select(BoardList.id).where(BoardList.board_id == board.id)
    await db.execute(delete(ActivityEntry).where(ActivityEntry.board_id == board.id))
    await db.execute(delete(Card).where(Card.list_id.in_(list_ids)))
    await db.execute(delete(BoardList).where(BoardList.board_id == board.id))
    await db.delete(board)
    await db.commit()

    await realtime.broadcast_to_board(
        board_id,
        MessageType.BOARD_DELETED.value,
        {"boardId": str(board_id), "userId": str(current_user.id)},
        exclude_connection_id=x_connection_id,
    )
    await realtime.close_board(board_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{board_id}/members", summary="List board members", description="Owner first.")
async def get_board_members(
    board_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
) -> dict:
    board, _ = await PermissionService(db).require_board(board_id, current_user.id, BoardRole.VIEWER)
    return {"members": _members_payload(board)}


@router.post(
    "/{board_id}/members",
    status_code=status.HTTP_201_CREATED,
    summary="Add a board member",
    description="Add a user as admin, member or viewer. Requires admin.",
    responses={
        400: {"description": "User is the owner or already a member"},
        404: {"description": "Board or user not found"},
    },
)
async def add_board_member(
    board_id: UUID,
    member_data: MemberAdd,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
    realtime: BoardRealtime = Depends(get_realtime),
    x_connection_id: Optional[str] = Header(None),
) -> dict:
    board, _ = await PermissionService(db).require_board(board_id, current_user.id, BoardRole.ADMIN)

    user = await get_user_by_id(db, member_data.user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if user.id == board.owner_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User is the board owner")
    if any(m.user_id == user.id for m in board.members):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User is already a member")

    role = member_data.role.value
    board.members.append(BoardMember(user_id=user.id, user=user, role=role))
    record_board_activity(
        db, board.id, current_user, "added member", "member", user.id, user.username,
        details=f"as {role}",
    )
    await db.commit()

    members = _members_payload(board)
    await realtime.broadcast_to_board(
        board.id,
        MessageType.MEMBER_ADDED.value,
        {
            "boardId": str(board.id),
            "members": members,
            "addedUserId": str(user.id),
            "userId": str(current_user.id),
        },
        exclude_connection_id=x_connection_id,
    )
    return {"board": _dump(BoardResponse.from_board(board, current_user.id)), "members": members}


@router.patch(
    "/{board_id}/members/{user_id}",
    summary="Change a member's role",
    description="Requires admin. The owner's role cannot be changed.",
)
async def update_board_member(
    board_id: UUID,
    user_id: UUID,
    role_data: MemberRoleUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
    realtime: BoardRealtime = Depends(get_realtime),
    x_connection_id: Optional[str] = Header(None),
) -> dict:
    board, _ = await PermissionService(db).require_board(board_id, current_user.id, BoardRole.ADMIN)
    if user_id == board.owner_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot change the owner's role")

    member = _find_member(board, user_id)
    previous_role = member.role
    role = role_data.role.value
    if role != previous_role:
        member.role = role
        record_board_activity(
            db, board.id, current_user, "changed role", "member", user_id, member.user.username,
            details=f"from {previous_role} to {role}",
        )
    await db.commit()

    members = _members_payload(board)
    await realtime.broadcast_to_board(
        board.id,
        MessageType.MEMBER_UPDATED.value,
        {
            "boardId": str(board.id),
            "members": members,
            "updatedUserId": str(user_id),
            "role": role,
            "userId": str(current_user.id),
        },
        exclude_connection_id=x_connection_id,
    )
    return {"board": _dump(BoardResponse.from_board(board, current_user.id)), "members": members}


@router.delete(
    "/{board_id}/members/{user_id}",
    summary="Remove a board member",
    description="Owner only. The user is also unassigned from the board's cards.",
    responses={403: {"description": "Caller is not the owner"}},
)
async def remove_board_member(
    board_id: UUID,
    user_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
    realtime: BoardRealtime = Depends(get_realtime),
    x_connection_id: Optional[str] = Header(None),
) -> dict:
    board = await PermissionService(db).require_owner(board_id, current_user.id)
    if user_id == board.owner_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot remove board owner")

    member = _find_member(board, user_id)
    username = member.user.username if member.user else "Unknown user"
    board.members.remove(member)

    list_ids = select(BoardList.id).where(BoardList.board_id == board.id)
    card_ids = select(Card.id).where(Card.list_id.in_(list_ids))
    await db.execute(
        delete(card_assignees).where(
            card_assignees.c.user_id == user_id,
            card_assignees.c.card_id.in_(card_ids),
        )
    )
    record_board_activity(db, board.id, current_user, "removed member", "member", user_id, username)
    await db.commit()

    members = _members_payload(board)
    await realtime.broadcast_to_board(
        board.id,
        MessageType.MEMBER_REMOVED.value,
        {
            "boardId": str(board.id),
            "members": members,
            "removedUserId": str(user_id),
            "userId": str(current_user.id),
        },
        exclude_connection_id=x_connection_id,
    )
    await realtime.remove_user_from_board(board.id, user_id)
    return {"board": _dump(BoardResponse.from_board(board, current_user.id)), "members": members}


@router.get(
    "/{board_id}/activity",
    summary="Board activity feed",
    description="Newest first. Use the oldest entry's createdAt as `before` for the next page.",
)
async def get_board_activity(
    board_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    before: Optional[datetime] = Query(None, description="Only entries strictly older than this"),
    limit: Optional[int] = Query(None, description="Page size, clamped to 1..100"),
    db: AsyncSession = Depends(get_db),
) -> dict:
    await PermissionService(db).require_board(board_id, current_user.id, BoardRole.VIEWER)
    entries = await list_board_activity(db, board_id, before=before, limit=limit)
    return {"activity": [_dump(ActivityResponse.model_validate(entry)) for entry in entries]}
