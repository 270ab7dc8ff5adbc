"""WebSocket realtime layer."""

from .handlers import BoardRealtime, get_realtime
from .manager import ConnectionManager, MessageType, WebSocketConnection, get_board_room
from .presence import PresenceTracker
from .room_auth import check_board_access

__all__ = [
    "BoardRealtime",
    "ConnectionManager",
    "MessageType",
    "PresenceTracker",
    "WebSocketConnection",
    "check_board_access",
    "get_board_room",
    "get_realtime",
]
