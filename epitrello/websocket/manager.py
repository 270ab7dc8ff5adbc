"""WebSocket connection manager with room-based support and Redis pub/sub.

This module provides WebSocket connection management with:
- Board rooms (`board:{id}`) for targeted broadcasts
- Per-user connection tracking for private messages (notifications)
- Redis pub/sub for cross-worker message delivery
- Graceful disconnect handling

Delivery is at-most-once: a send that fails is dropped, there is no ack
or replay.
"""

import asyncio
import logging
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from fastapi import WebSocket

from ..config import settings
from ..services.redis_service import RedisService, redis_service

logger = logging.getLogger(__name__)


class MessageType(str, Enum):
    """WebSocket message types."""

    # Connection events
    CONNECTED = "connected"
    ERROR = "error"
    PING = "ping"
    PONG = "pong"

    # Client requests
    BOARD_JOIN = "board:join"
    BOARD_LEAVE = "board:leave"
    CURSOR_MOVE = "cursor:move"

    # Presence events
    BOARD_JOINED = "board:joined"
    USER_JOINED = "board:user-joined"
    USER_LEFT = "board:user-left"
    CURSOR_UPDATED = "cursor:updated"

    # Board events
    BOARD_UPDATED = "board:updated"
    BOARD_DELETED = "board:deleted"
    MEMBER_ADDED = "board:member-added"
    MEMBER_UPDATED = "board:member-updated"
    MEMBER_REMOVED = "board:member-removed"

    # List events
    LIST_CREATED = "list:created"
    LIST_UPDATED = "list:updated"
    LIST_DELETED = "list:deleted"
    LISTS_REORDERED = "lists:reordered"

    # Card events
    CARD_CREATED = "card:created"
    CARD_UPDATED = "card:updated"
    CARD_DELETED = "card:deleted"
    CARD_MOVED = "card:moved"

    # Notification events
    NOTIFICATION_NEW = "notification:new"


def get_board_room(board_id: UUID | str) -> str:
    """Room identifier for a board."""
    return f"board:{board_id}"


@dataclass
class WebSocketConnection:
    """Represents a WebSocket connection with user context."""

    websocket: WebSocket
    user_id: UUID
    username: str = ""
    avatar_url: Optional[str] = None
    connection_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    connected_at: datetime = field(default_factory=datetime.utcnow)
    rooms: set[str] = field(default_factory=set)
    cursor_timestamps: deque = field(default_factory=deque)

    def __hash__(self) -> int:
        return hash(self.connection_id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, WebSocketConnection):
            return False
        return self.connection_id == other.connection_id


def envelope(message_type: str, data: dict[str, Any]) -> dict[str, Any]:
    """Wire envelope shared by every server-sent message."""
    return {"type": message_type, "data": data}


class ConnectionManager:
    """
    WebSocket connection manager with room-based support and Redis pub/sub.

    When Redis is connected, broadcasts are published and every worker
    (this one included) delivers them to its local connections. Otherwise
    delivery is local only.
    """

    # Redis pub/sub channels
    _BROADCAST_CHANNEL = "ws:broadcast"
    _USER_CHANNEL = "ws:user"

    def __init__(self, redis: Optional[RedisService] = None) -> None:
        self._redis = redis or redis_service
        # room_id -> connections
        self._rooms: dict[str, set[WebSocketConnection]] = {}
        # connection_id -> connection
        self._connections: dict[str, WebSocketConnection] = {}
        # user_id -> connections (for user-targeted messages)
        self._user_connections: dict[UUID, set[WebSocketConnection]] = {}
        self._redis_initialized = False

    async def initialize_redis(self) -> None:
        """Set up Redis pub/sub handlers for cross-worker messaging."""
        if self._redis_initialized:
            return

        await self._redis.subscribe(self._BROADCAST_CHANNEL, self._handle_redis_broadcast)
        await self._redis.subscribe(self._USER_CHANNEL, self._handle_redis_user_message)
        self._redis_initialized = True
        logger.info("ConnectionManager Redis pub/sub initialized")

    async def _handle_redis_broadcast(self, data: dict) -> None:
        """Deliver a room broadcast published by any worker to local connections."""
        room_id = data.get("room_id")
        message = data.get("message")
        if not room_id or not message:
            return
        await self._deliver_to_room(room_id, message, data.get("exclude_connection_id"))

    async def _handle_redis_user_message(self, data: dict) -> None:
        """Deliver a user-targeted message published by any worker."""
        message = data.get("message")
        try:
            user_id = UUID(data.get("user_id", ""))
        except ValueError:
            return
        if message:
            await self._deliver_to_user(user_id, message)

    @property
    def total_connections(self) -> int:
        return len(self._connections)

    @property
    def total_rooms(self) -> int:
        return len(self._rooms)

    def get_connection(self, connection_id: str) -> Optional[WebSocketConnection]:
        return self._connections.get(connection_id)

    def get_room_connections(self, room_id: str) -> list[WebSocketConnection]:
        return list(self._rooms.get(room_id, set()))

    def get_room_count(self, room_id: str) -> int:
        return len(self._rooms.get(room_id, set()))

    def get_user_connections_count(self, user_id: UUID) -> int:
        return len(self._user_connections.get(user_id, set()))

    async def connect(
        self,
        websocket: WebSocket,
        user_id: UUID,
        username: str = "",
        avatar_url: Optional[str] = None,
    ) -> Optional[WebSocketConnection]:
        """
        Accept a WebSocket connection and register it.

        Sends `connected {connectionId, userId}` so the client can tag its
        HTTP mutations with X-Connection-Id.

        Returns:
            The connection wrapper object, or None if rejected
        """
        current_connections = self.get_user_connections_count(user_id)
        if current_connections >= settings.ws_max_connections_per_user:
            logger.warning(
                f"Connection limit reached for user {user_id}: "
                f"{current_connections}/{settings.ws_max_connections_per_user}"
            )
            await websocket.close(code=4029, reason="Too many connections")
            return None

        await websocket.accept()

        connection = WebSocketConnection(
            websocket=websocket,
            user_id=user_id,
            username=username,
            avatar_url=avatar_url,
        )
        self._connections[connection.connection_id] = connection
        self._user_connections.setdefault(user_id, set()).add(connection)

        logger.info(
            f"WebSocket connected: user={user_id}, "
            f"total_connections={self.total_connections}"
        )

        await self.send_personal(
            connection,
            envelope(
                MessageType.CONNECTED.value,
                {"connectionId": connection.connection_id, "userId": str(user_id)},
            ),
        )
        return connection

    def disconnect(self, connection: WebSocketConnection) -> None:
        """Forget a connection and remove it from every room."""
        if self._connections.pop(connection.connection_id, None) is None:
            return

        user_connections = self._user_connections.get(connection.user_id)
        if user_connections is not None:
            user_connections.discard(connection)
            if not user_connections:
                del self._user_connections[connection.user_id]

        for room_id in list(connection.rooms):
            self.leave_room(connection, room_id)

        logger.info(
            f"WebSocket disconnected: user={connection.user_id}, "
            f"total_connections={self.total_connections}"
        )

    def join_room(self, connection: WebSocketConnection, room_id: str) -> None:
        self._rooms.setdefault(room_id, set()).add(connection)
        connection.rooms.add(room_id)

    def leave_room(self, connection: WebSocketConnection, room_id: str) -> None:
        members = self._rooms.get(room_id)
        if members is not None:
            members.discard(connection)
            if not members:
                del self._rooms[room_id]
        connection.rooms.discard(room_id)

    async def send_personal(
        self,
        connection: WebSocketConnection,
        message: dict[str, Any],
    ) -> bool:
        """
        Send a message to a specific connection.

        Returns:
            True if sent successfully, False otherwise
        """
        try:
            await connection.websocket.send_json(message)
            return True
        except Exception as e:
            logger.debug(f"Send to {connection.connection_id} failed: {e}")
            return False

    async def _send_all(self, connections: set[WebSocketConnection], message: dict[str, Any]) -> int:
        if not connections:
            return 0
        results = await asyncio.gather(
            *(self.send_personal(conn, message) for conn in connections),
            return_exceptions=True,
        )
        return sum(1 for r in results if r is True)

    async def _deliver_to_room(
        self,
        room_id: str,
        message: dict[str, Any],
        exclude_connection_id: Optional[str] = None,
    ) -> int:
        connections = {
            conn
            for conn in self._rooms.get(room_id, set())
            if conn.connection_id != exclude_connection_id
        }
        success_count = await self._send_all(connections, message)
        logger.debug(f"Broadcast to room {room_id}: {success_count}/{len(connections)} successful")
        return success_count

    async def _deliver_to_user(self, user_id: UUID, message: dict[str, Any]) -> int:
        return await self._send_all(set(self._user_connections.get(user_id, set())), message)

    async def broadcast_to_room(
        self,
        room_id: str,
        message: dict[str, Any],
        exclude_connection_id: Optional[str] = None,
    ) -> int:
        """
        Broadcast a message to all connections in a room (across all workers).

        Args:
            room_id: The room to broadcast to
            message: The message to send
            exclude_connection_id: Connection that must not receive it

        Returns:
            Number of local recipients
        """
        if self._redis.is_connected:
            await self._redis.publish(
                self._BROADCAST_CHANNEL,
                {
                    "room_id": room_id,
                    "message": message,
                    "exclude_connection_id": exclude_connection_id,
                },
            )
            # Redis delivers to all workers including this one
            return sum(
                1
                for conn in self._rooms.get(room_id, set())
                if conn.connection_id != exclude_connection_id
            )

        return await self._deliver_to_room(room_id, message, exclude_connection_id)

    async def broadcast_to_user(self, user_id: UUID, message: dict[str, Any]) -> int:
        """
        Send a message to every connection of a user (across all workers).

        Returns:
            Number of local connections for this user
        """
        if self._redis.is_connected:
            await self._redis.publish(
                self._USER_CHANNEL,
                {"user_id": str(user_id), "message": message},
            )
            return self.get_user_connections_count(user_id)

        return await self._deliver_to_user(user_id, message)
