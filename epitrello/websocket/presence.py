"""In-process presence tracking for board rooms.

Presence is session state: board -> connection -> who and since when. It
lives in the worker that owns the connection and is rebuilt as clients
reconnect. A user with several tabs open has one record per connection
but appears once in the active list.
"""

import itertools
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

logger = logging.getLogger(__name__)


@dataclass
class PresenceRecord:
    """One connection's presence on a board."""

    user_id: str
    username: str
    avatar_url: Optional[str]
    joined_at: datetime
    sequence: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "username": self.username,
            "avatarUrl": self.avatar_url,
            "joinedAt": self.joined_at.isoformat(),
        }


class PresenceTracker:
    """
    Tracks which connections are present on which boards.

    Each connection is present on at most one board. Not thread-safe; all
    calls happen on the event loop and none of them await.
    """

    def __init__(self) -> None:
        self._boards: dict[str, dict[str, PresenceRecord]] = {}
        self._connection_boards: dict[str, str] = {}
        # Tiebreak for identical join timestamps
        self._sequence = itertools.count()

    def join(
        self,
        board_id: str,
        connection_id: str,
        user_id: str,
        username: str,
        avatar_url: Optional[str] = None,
    ) -> PresenceRecord:
        """
        Record a connection as present on a board.

        A connection already present elsewhere is moved. Joining the same
        board again keeps the original record.
        """
        board_id, user_id = str(board_id), str(user_id)
        current = self._connection_boards.get(connection_id)
        if current == board_id:
            return self._boards[board_id][connection_id]
        if current is not None:
            self.leave(current, connection_id)

        record = PresenceRecord(
            user_id=user_id,
            username=username,
            avatar_url=avatar_url,
            joined_at=datetime.utcnow(),
            sequence=next(self._sequence),
        )
        self._boards.setdefault(board_id, {})[connection_id] = record
        self._connection_boards[connection_id] = board_id
        return record

    def leave(self, board_id: str, connection_id: str) -> Optional[PresenceRecord]:
        """Remove a connection from a board. Returns the removed record, if any."""
        board_id = str(board_id)
        connections = self._boards.get(board_id)
        if connections is None:
            return None
        record = connections.pop(connection_id, None)
        if record is None:
            return None
        if not connections:
            del self._boards[board_id]
        if self._connection_boards.get(connection_id) == board_id:
            del self._connection_boards[connection_id]
        return record

    def leave_connection(self, connection_id: str) -> Optional[tuple[str, PresenceRecord]]:
        """Remove a connection from whatever board it is on."""
        board_id = self._connection_boards.get(connection_id)
        if board_id is None:
            return None
        record = self.leave(board_id, connection_id)
        return (board_id, record) if record else None

    def board_for(self, connection_id: str) -> Optional[str]:
        return self._connection_boards.get(connection_id)

    def is_user_present(self, board_id: str, user_id: str) -> bool:
        user_id = str(user_id)
        return any(
            record.user_id == user_id
            for record in self._boards.get(str(board_id), {}).values()
        )

    def list_active(self, board_id: str) -> list[dict[str, Any]]:
        """
        Users present on a board, one entry per user.

        A user's entry carries their earliest join; entries are sorted by
        that join time.
        """
        earliest: dict[str, PresenceRecord] = {}
        for record in self._boards.get(str(board_id), {}).values():
            seen = earliest.get(record.user_id)
            if seen is None or (record.joined_at, record.sequence) < (seen.joined_at, seen.sequence):
                earliest[record.user_id] = record
        ordered = sorted(earliest.values(), key=lambda r: (r.joined_at, r.sequence))
        return [record.to_dict() for record in ordered]

    def stats(self) -> dict[str, int]:
        return {
            "boards": len(self._boards),
            "connections": len(self._connection_boards),
        }
