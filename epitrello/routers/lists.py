"""Lists API endpoints.

Lists are ordered per board by an integer position, unique per board.
Reordering goes through the two-phase reindexer.
"""

from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Response, status
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.board_list import BoardList
from ..models.card import Card
from ..models.user import User
from ..schemas.board_list import ListCreate, ListResponse, ListUpdate, ReorderListsRequest
from ..services.auth_service import get_current_user
from ..services.permission_service import BoardRole, PermissionService
from ..services.reindex_service import TwoPhaseReindexer, next_position
from ..websocket.handlers import BoardRealtime, get_realtime
from ..websocket.manager import MessageType

router = APIRouter(prefix="/api/lists", tags=["Lists"])


def position_conflict() -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Position conflict")


def _dump(board_list: BoardList) -> dict:
    return ListResponse.model_validate(board_list).model_dump(mode="json", by_alias=True)


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create a list",
    description="Append a list to a board, or place it at an explicit free position.",
    responses={409: {"description": "Position already taken"}},
)
async def create_list(
    list_data: ListCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
    realtime: BoardRealtime = Depends(get_realtime),
    x_connection_id: Optional[str] = Header(None),
) -> dict:
    board, _ = await PermissionService(db).require_board(list_data.board_id, current_user.id, BoardRole.MEMBER)

    position = list_data.position
    if position is None:
        position = await next_position(db, BoardList, "board_id", board.id)

    board_list = BoardList(title=list_data.title.strip(), board_id=board.id, position=position, archived=False)
    db.add(board_list)
    try:
        await db.flush()
    except IntegrityError:
        raise position_conflict()
    await db.commit()

    payload = _dump(board_list)
    await realtime.broadcast_to_board(
        board.id,
        MessageType.LIST_CREATED.value,
        {"list": payload, "userId": str(current_user.id)},
        exclude_connection_id=x_connection_id,
    )
    return {"list": payload}


@router.get("", summary="List a board's lists", description="Sorted by position.")
async def list_lists(
    current_user: Annotated[User, Depends(get_current_user)],
    board: UUID = Query(..., description="Board ID"),
    db: AsyncSession = Depends(get_db),
) -> dict:
    await PermissionService(db).require_board(board, current_user.id, BoardRole.VIEWER)
    result = await db.execute(
        select(BoardList).where(BoardList.board_id == board).order_by(BoardList.position)
    )
    return {"lists": [_dump(board_list) for board_list in result.scalars().all()]}


@router.post(
    "/reorder",
    summary="Reorder a board's lists",
    description=(
        "Assign dense positions to the board's lists in the given order. "
        "IDs that do not belong to the board are ignored."
    ),
    responses={
        409: {"description": "A position collided with a list missing from the request"},
        503: {"description": "Reorder timed out, retry"},
    },
)
async def reorder_lists(
    reorder: ReorderListsRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
    realtime: BoardRealtime = Depends(get_realtime),
    x_connection_id: Optional[str] = Header(None),
) -> dict:
    board, _ = await PermissionService(db).require_board(reorder.board_id, current_user.id, BoardRole.MEMBER)

    lists = await TwoPhaseReindexer(db, BoardList, "board_id").reorder(board.id, reorder.list_ids)
    await db.commit()

    payload = [_dump(board_list) for board_list in lists]
    await realtime.broadcast_to_board(
        board.id,
        MessageType.LISTS_REORDERED.value,
        {
            "boardId": str(board.id),
            "lists": payload,
            "listIds": [str(list_id) for list_id in reorder.list_ids],
            "userId": str(current_user.id),
        },
        exclude_connection_id=x_connection_id,
    )
    return {"lists": payload}


@router.get("/{list_id}", summary="Get a list")
async def get_list(
    list_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
) -> dict:
    board_list, _, _ = await PermissionService(db).require_list(list_id, current_user.id, BoardRole.VIEWER)
    return {"list": _dump(board_list)}


@router.patch(
    "/{list_id}",
    summary="Update a list",
    description="Change title, archived flag or position. A taken position is a 409.",
)
async def update_list(
    list_id: UUID,
    updates: ListUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
    realtime: BoardRealtime = Depends(get_realtime),
    x_connection_id: Optional[str] = Header(None),
) -> dict:
    board_list, board, _ = await PermissionService(db).require_list(list_id, current_user.id, BoardRole.MEMBER)

    if updates.title is not None:
        board_list.title = updates.title.strip()
    if updates.archived is not None:
        board_list.archived = updates.archived
    if updates.position is not None:
        board_list.position = updates.position
    try:
        await db.flush()
    except IntegrityError:
        raise position_conflict()
    await db.commit()

    payload = _dump(board_list)
    await realtime.broadcast_to_board(
        board.id,
        MessageType.LIST_UPDATED.value,
        {"list": payload, "userId": str(current_user.id)},
        exclude_connection_id=x_connection_id,
    )
    return {"list": payload}


@router.delete(
    "/{list_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a list",
    description="Delete a list and its cards.",
)
async def delete_list(
    list_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
    realtime: BoardRealtime = Depends(get_realtime),
    x_connection_id: Optional[str] = Header(None),
) -> Response:
    board_list, board, _ = await PermissionService(db).require_list(list_id, current_user.id, BoardRole.MEMBER)

    await db.execute(delete(Card).where(Card.list_id == board_list.id))
    await db.delete(board_list)
    await db.commit()

    await realtime.broadcast_to_board(
        board.id,
        MessageType.LIST_DELETED.value,
        {"listId": str(list_id), "boardId": str(board.id), "userId": str(current_user.id)},
        exclude_connection_id=x_connection_id,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
