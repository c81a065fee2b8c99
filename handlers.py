import json
from typing import Awaitable, Callable, Dict, Union

from pydantic import ValidationError

from backend import RelayBackend
from constants import DEFAULT_ROOM, UNKNOWN_USER
from logging_config import get_logger
from message_types import (
    CONNECT,
    CONNECTED,
    GET_TASKS,
    INITIAL_TASKS,
    JOIN_ROOM,
    PING,
    PONG,
    ROOM_TASKS,
    TASK_UPDATE,
    TASKS_LIST,
    make_frame,
)
from registry import Connection
from schemas.messages import ConnectMessage, GetTasksMessage, JoinRoomMessage, TaskUpdateMessage

logger = get_logger(__name__)

INVALID_FORMAT = "Invalid message format"
NOT_REGISTERED = "Client not registered"

Handler = Callable[[Connection, dict], Awaitable[None]]


def _clean(value, default: str) -> str:
    if value and value.strip():
        return value.strip()
    return default


class MessageRouter:
    """Parses inbound frames and dispatches them by ``type``.

    Nothing here closes the connection: bad frames and handler failures are
    answered with an ERROR frame.
    """

    def __init__(self, backend: RelayBackend):
        self.backend = backend
        self.broadcaster = backend.broadcaster
        self._handlers: Dict[str, Handler] = {
            CONNECT: self.handle_connect,
            JOIN_ROOM: self.handle_join_room,
            TASK_UPDATE: self.handle_task_update,
            GET_TASKS: self.handle_get_tasks,
            PING: self.handle_ping,
            PONG: self.handle_pong,
        }

    async def dispatch(self, connection: Connection, data: Union[str, bytes]) -> None:
        # Any inbound frame, even a malformed one, proves the peer is alive
        self.backend.registry.mark_alive(connection)
        try:
            if isinstance(data, bytes):
                data = data.decode("utf-8")
            message = json.loads(data)
            if not isinstance(message, dict):
                raise ValueError("frame is not a JSON object")
        except ValueError as e:
            # JSONDecodeError and UnicodeDecodeError are both ValueErrors
            logger.warning(f"Malformed frame from {connection.client_id}: {e}")
            await self.broadcaster.send_error(connection, INVALID_FORMAT)
            return

        message_type = message.get("type") or message.get("kind")
        logger.debug(f"Received message from {connection.client_id}: {message_type}")

        handler = self._handlers.get(message_type) if isinstance(message_type, str) else None
        if handler is None:
            logger.warning(f"Unknown message type from {connection.client_id}: {message_type}")
            await self.broadcaster.send_error(connection, f"Unknown message type: {message_type}")
            return

        try:
            await handler(connection, message)
        except ValidationError as e:
            logger.warning(f"Invalid {message_type} from {connection.client_id}: {e.error_count()} validation errors")
            await self.broadcaster.send_error(connection, INVALID_FORMAT)
        except Exception as e:
            logger.error(f"Error handling {message_type} from {connection.client_id}: {e}", exc_info=True)
            await self.broadcaster.send_error(connection, INVALID_FORMAT)

    async def _require_joined(self, connection: Connection) -> bool:
        if self.backend.registry.lookup(connection) is None:
            await self.broadcaster.send_error(connection, NOT_REGISTERED)
            return False
        return True

    async def handle_connect(self, connection: Connection, message: dict) -> None:
        payload = ConnectMessage.model_validate(message)
        room = _clean(payload.room, DEFAULT_ROOM)
        username = _clean(payload.username, UNKNOWN_USER)

        snapshot = await self.backend.join(connection, room, username)
        if snapshot is None:
            return

        await self.broadcaster.send(connection, make_frame(INITIAL_TASKS, tasks=snapshot.tasks, room=room))
        await self.broadcaster.send(
            connection,
            make_frame(CONNECTED, clientId=connection.client_id, room=room, connectedUsers=snapshot.users),
        )

    async def handle_join_room(self, connection: Connection, message: dict) -> None:
        if not await self._require_joined(connection):
            return
        payload = JoinRoomMessage.model_validate(message)
        room = _clean(payload.room, DEFAULT_ROOM)

        snapshot = await self.backend.join(connection, room, connection.username)
        if snapshot is None:
            return
        await self.broadcaster.send(connection, make_frame(ROOM_TASKS, tasks=snapshot.tasks, room=room))

    async def handle_task_update(self, connection: Connection, message: dict) -> None:
        if not await self._require_joined(connection):
            return
        payload = TaskUpdateMessage.model_validate(message)
        # Forward the task exactly as the client sent it, not the model's view of it
        await self.backend.apply_task_update(connection, payload.updateType, dict(message["task"]))

    async def handle_get_tasks(self, connection: Connection, message: dict) -> None:
        if not await self._require_joined(connection):
            return
        payload = GetTasksMessage.model_validate(message)
        room = _clean(payload.room, connection.room)
        await self.broadcaster.send(connection, make_frame(TASKS_LIST, tasks=self.backend.tasks_for(room), room=room))

    async def handle_ping(self, connection: Connection, message: dict) -> None:
        await self.broadcaster.send(connection, make_frame(PONG))

    async def handle_pong(self, connection: Connection, message: dict) -> None:
        """Heartbeat acknowledgment; dispatch has already refreshed the liveness flag."""
