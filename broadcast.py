import asyncio
import json
from typing import Optional

from starlette.websockets import WebSocketState

from logging_config import get_logger
from message_types import ERROR, make_frame
from registry import Connection
from rooms import RoomDirectory

logger = get_logger(__name__)


def is_writable(websocket) -> bool:
    return (
        websocket.client_state == WebSocketState.CONNECTED
        and websocket.application_state == WebSocketState.CONNECTED
    )


class Broadcaster:
    """Fire-and-forget delivery of frames to single connections or whole rooms.

    Send failures are logged and never raised; a broken member is left for the
    liveness monitor to reap.
    """

    def __init__(self, rooms: RoomDirectory, send_timeout: Optional[float] = None):
        self.rooms = rooms
        # Upper bound for one send; a peer with a full TCP buffer never drains
        self.send_timeout = send_timeout

    async def _deliver(self, connection: Connection, text: str) -> bool:
        if not is_writable(connection.websocket):
            logger.debug(f"Skipping connection {connection.client_id}: transport not writable")
            return False
        try:
            await asyncio.wait_for(connection.websocket.send_text(text), timeout=self.send_timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(f"Send to connection {connection.client_id} timed out after {self.send_timeout}s")
            return False
        except Exception as e:
            logger.warning(f"Error sending to connection {connection.client_id}: {e}")
            return False

    async def send(self, connection: Connection, message: dict) -> bool:
        return await self._deliver(connection, json.dumps(message))

    async def send_error(self, connection: Connection, error_message: str) -> bool:
        return await self.send(connection, make_frame(ERROR, message=error_message))

    async def broadcast(self, room: str, message: dict, exclude: Optional[Connection] = None) -> int:
        """Send ``message`` to every member of ``room`` except ``exclude``.

        Returns the number of members the frame was handed to.
        """
        recipients = [member for member in self.rooms.members_of(room) if member is not exclude]
        if not recipients:
            return 0

        text = json.dumps(message)
        results = await asyncio.gather(
            *(self._deliver(member, text) for member in recipients),
            return_exceptions=True,
        )
        delivered = sum(1 for result in results if result is True)
        logger.debug(f"Broadcast {message.get('type', 'unknown')} to {delivered}/{len(recipients)} members of room {room}")
        return delivered
