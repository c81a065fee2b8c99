import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from constants import DEFAULT_ROOM, UNKNOWN_USER
from logging_config import get_logger
from message_types import utc_timestamp

logger = get_logger(__name__)


@dataclass(eq=False)
class Connection:
    """One live WebSocket and the state the relay keeps for it.

    Compared and hashed by identity so it can sit in room member sets.
    """

    websocket: Any
    client_id: str
    connected_at: str
    username: str = UNKNOWN_USER
    room: str = DEFAULT_ROOM
    is_alive: bool = True
    joined: bool = False


@dataclass(frozen=True)
class ClientInfo:
    client_id: str
    username: str
    room: str
    connected_at: str


class ConnectionRegistry:
    def __init__(self):
        # Format: {client_id: Connection}
        self._connections: Dict[str, Connection] = {}

    def register(self, websocket) -> Connection:
        client_id = uuid.uuid4().hex
        connection = Connection(websocket=websocket, client_id=client_id, connected_at=utc_timestamp())
        self._connections[client_id] = connection
        logger.debug(f"Registered connection {client_id} (total: {len(self._connections)})")
        return connection

    def lookup(self, connection: Connection) -> Optional[ClientInfo]:
        """Return join details, or None before join or after removal."""
        if not self.contains(connection) or not connection.joined:
            return None
        return ClientInfo(
            client_id=connection.client_id,
            username=connection.username,
            room=connection.room,
            connected_at=connection.connected_at,
        )

    def assign(self, connection: Connection, username: str, room: str) -> None:
        connection.username = username
        connection.room = room
        connection.joined = True
        logger.debug(f"Connection {connection.client_id} is now {username} in room {room}")

    def mark_alive(self, connection: Connection, alive: bool = True) -> None:
        connection.is_alive = alive

    def remove(self, connection: Connection) -> bool:
        removed = self._connections.pop(connection.client_id, None) is not None
        if removed:
            logger.debug(f"Removed connection {connection.client_id} (total: {len(self._connections)})")
        return removed

    def contains(self, connection: Connection) -> bool:
        return self._connections.get(connection.client_id) is connection

    def all(self) -> List[Connection]:
        return list(self._connections.values())

    @property
    def count(self) -> int:
        return len(self._connections)
