"""Realtime gateway: board broadcasts, presence and cursor relay.

BoardRealtime is built once at application start and stored on
`app.state.realtime`. HTTP routers reach it through the `get_realtime`
dependency and call `broadcast_to_board` after their transaction commits.
"""

import logging
import time
from typing import Any, Awaitable, Callable, Optional
from uuid import UUID

from fastapi import Request

from ..config import settings
from .manager import ConnectionManager, MessageType, WebSocketConnection, envelope, get_board_room
from .presence import PresenceTracker

logger = logging.getLogger(__name__)

# (user_id, board_id) -> whether the user may view the board
BoardAuthorizer = Callable[[UUID, UUID], Awaitable[bool]]


def _board_id_from(data: Any) -> Optional[str]:
    """Accept `{"boardId": ...}` or a bare ID string as the message data."""
    if isinstance(data, dict):
        data = data.get("boardId")
    if isinstance(data, str) and data:
        return data
    return None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class BoardRealtime:
    """
    Room-scoped broadcaster plus presence and cursor handling.

    Presence events are per user: `board:user-joined` goes out on a user's
    first connection to a board and `board:user-left` when their last one
    leaves.
    """

    def __init__(self, manager: ConnectionManager, presence: PresenceTracker):
        self.manager = manager
        self.presence = presence

    async def broadcast_to_board(
        self,
        board_id: UUID | str,
        event: str,
        payload: dict[str, Any],
        exclude_connection_id: Optional[str] = None,
    ) -> int:
        """Send `{type: event, data: payload}` to a board room. At-most-once."""
        return await self.manager.broadcast_to_room(
            get_board_room(board_id),
            envelope(event, payload),
            exclude_connection_id=exclude_connection_id,
        )

    async def broadcast_to_user(self, user_id: UUID | str, event: str, payload: dict[str, Any]) -> int:
        """Send to every connection of a user, whatever room they are in."""
        if not isinstance(user_id, UUID):
            user_id = UUID(str(user_id))
        return await self.manager.broadcast_to_user(user_id, envelope(event, payload))

    async def send_error(self, connection: WebSocketConnection, error: str, message: str) -> None:
        await self.manager.send_personal(
            connection,
            envelope(MessageType.ERROR.value, {"error": error, "message": message}),
        )

    async def handle_join(
        self,
        connection: WebSocketConnection,
        data: Any,
        authorizer: Optional[BoardAuthorizer] = None,
    ) -> bool:
        """
        Join a board room after an access check.

        A connection is in one board room at a time; joining another board
        leaves the previous one first.

        Returns:
            True if the connection joined
        """
        board_id = _board_id_from(data)
        if board_id is None:
            await self.send_error(connection, "INVALID_MESSAGE", "Board ID required")
            return False
        try:
            board_uuid = UUID(board_id)
        except ValueError:
            await self.send_error(connection, "INVALID_MESSAGE", "Invalid board ID")
            return False
        board_id = str(board_uuid)

        if authorizer is not None and not await authorizer(connection.user_id, board_uuid):
            logger.warning(f"Board access denied: user={connection.user_id}, board={board_id}")
            await self.send_error(connection, "UNAUTHORIZED", "Access denied to board")
            return False

        previous = self.presence.board_for(connection.connection_id)
        if previous is not None and previous != board_id:
            await self._leave(connection, previous)

        user_id = str(connection.user_id)
        first_connection = not self.presence.is_user_present(board_id, user_id)
        self.presence.join(
            board_id,
            connection.connection_id,
            user_id,
            connection.username,
            connection.avatar_url,
        )
        self.manager.join_room(connection, get_board_room(board_id))
        active_users = self.presence.list_active(board_id)

        await self.manager.send_personal(
            connection,
            envelope(
                MessageType.BOARD_JOINED.value,
                {
                    "boardId": board_id,
                    "userId": user_id,
                    "username": connection.username,
                    "activeUsers": active_users,
                },
            ),
        )

        if first_connection:
            await self.broadcast_to_board(
                board_id,
                MessageType.USER_JOINED.value,
                {
                    "boardId": board_id,
                    "userId": user_id,
                    "username": connection.username,
                    "avatarUrl": connection.avatar_url,
                    "activeUsers": active_users,
                },
                exclude_connection_id=connection.connection_id,
            )
        return True

    async def handle_leave(self, connection: WebSocketConnection, data: Any = None) -> None:
        """Leave the given board, or the connection's current board."""
        board_id = _board_id_from(data) or self.presence.board_for(connection.connection_id)
        if board_id is not None:
            await self._leave(connection, board_id)

    async def _leave(self, connection: WebSocketConnection, board_id: str) -> None:
        record = self.presence.leave(board_id, connection.connection_id)
        self.manager.leave_room(connection, get_board_room(board_id))
        if record is None or self.presence.is_user_present(board_id, record.user_id):
            return
        await self.broadcast_to_board(
            board_id,
            MessageType.USER_LEFT.value,
            {
                "boardId": board_id,
                "userId": record.user_id,
                "username": record.username,
                "activeUsers": self.presence.list_active(board_id),
            },
        )

    def _allow_cursor(self, connection: WebSocketConnection) -> bool:
        """Sliding-window limit of cursor messages per connection."""
        now = time.monotonic()
        timestamps = connection.cursor_timestamps
        while timestamps and now - timestamps[0] >= settings.cursor_rate_window:
            timestamps.popleft()
        if len(timestamps) >= settings.cursor_rate_limit:
            return False
        timestamps.append(now)
        return True

    async def handle_cursor(self, connection: WebSocketConnection, data: Any) -> bool:
        """
        Relay a cursor position to the rest of the board room.

        Invalid coordinates, a connection that has not joined a board, and
        messages over the rate limit are dropped without a reply.

        Returns:
            True if the cursor was relayed
        """
        if not isinstance(data, dict) or not _is_number(data.get("x")) or not _is_number(data.get("y")):
            return False
        board_id = self.presence.board_for(connection.connection_id)
        if board_id is None:
            return False
        if not self._allow_cursor(connection):
            return False

        await self.broadcast_to_board(
            board_id,
            MessageType.CURSOR_UPDATED.value,
            {
                "boardId": board_id,
                "userId": str(connection.user_id),
                "username": connection.username,
                "x": data["x"],
                "y": data["y"],
            },
            exclude_connection_id=connection.connection_id,
        )
        return True

    async def remove_user_from_board(self, board_id: UUID | str, user_id: UUID) -> None:
        """Drop a user's connections from a board room (access revoked)."""
        board_id = str(board_id)
        for connection in self.manager.get_room_connections(get_board_room(board_id)):
            if connection.user_id == user_id:
                await self._leave(connection, board_id)

    async def close_board(self, board_id: UUID | str) -> None:
        """Empty a deleted board's room without presence events."""
        board_id = str(board_id)
        for connection in self.manager.get_room_connections(get_board_room(board_id)):
            self.presence.leave(board_id, connection.connection_id)
            self.manager.leave_room(connection, get_board_room(board_id))

    async def handle_disconnect(self, connection: WebSocketConnection) -> None:
        """Clean up presence and connection state for a closed socket."""
        board_id = self.presence.board_for(connection.connection_id)
        if board_id is not None:
            await self._leave(connection, board_id)
        self.manager.disconnect(connection)

    async def route_incoming_message(
        self,
        connection: WebSocketConnection,
        data: dict[str, Any],
        authorizer: Optional[BoardAuthorizer] = None,
    ) -> None:
        """
        Route an incoming WebSocket message to its handler.

        Args:
            connection: The connection that sent the message
            data: The decoded message `{type, data}`
            authorizer: Board access check used for board:join
        """
        message_type = data.get("type")
        payload = data.get("data")
        logger.debug(f"Routing message: user={connection.user_id}, type={message_type}")

        if message_type == MessageType.BOARD_JOIN.value:
            await self.handle_join(connection, payload, authorizer)
        elif message_type == MessageType.BOARD_LEAVE.value:
            await self.handle_leave(connection, payload)
        elif message_type == MessageType.CURSOR_MOVE.value:
            await self.handle_cursor(connection, payload)
        elif message_type == MessageType.PING.value:
            await self.manager.send_personal(connection, envelope(MessageType.PONG.value, {}))
        elif message_type == MessageType.PONG.value:
            pass
        else:
            await self.send_error(connection, "UNKNOWN_TYPE", f"Unknown message type: {message_type}")


def get_realtime(request: Request) -> BoardRealtime:
    """FastAPI dependency returning the application's realtime gateway."""
    return request.app.state.realtime
