from typing import Dict, List, Set

from logging_config import get_logger
from registry import Connection

logger = get_logger(__name__)


class RoomDirectory:
    """Membership table: room name -> member connections.

    Rooms exist only while they have members. The join/leave sequences that
    also notify the room live on RelayBackend.
    """

    def __init__(self):
        self._members: Dict[str, Set[Connection]] = {}

    def add(self, room: str, connection: Connection) -> bool:
        """Add a member, creating the room if needed. Returns True if the room was created."""
        created = room not in self._members
        if created:
            self._members[room] = set()
            logger.info(f"Room {room} created")
        self._members[room].add(connection)
        logger.debug(f"Connection {connection.client_id} added to room {room} (members: {len(self._members[room])})")
        return created

    def discard(self, room: str, connection: Connection) -> bool:
        """Remove a member, deleting the room once empty. Returns True if it was a member."""
        members = self._members.get(room)
        if members is None or connection not in members:
            return False
        members.discard(connection)
        if not members:
            del self._members[room]
            logger.info(f"Room {room} deleted (empty)")
        return True

    def members_of(self, room: str) -> List[Connection]:
        return list(self._members.get(room, ()))

    def has_room(self, room: str) -> bool:
        return room in self._members

    def names(self) -> List[str]:
        return list(self._members)

    def __len__(self) -> int:
        return len(self._members)
