import asyncio
import time
from dataclasses import dataclass
from typing import List, Optional, Set

import psutil

from broadcast import Broadcaster
from constants import CLOSE_GOING_AWAY
from logging_config import get_logger
from message_types import DELETE, SERVER_SHUTDOWN, TASK_UPDATE, USER_JOINED, USER_LEFT, make_frame, utc_timestamp
from registry import Connection, ConnectionRegistry
from rooms import RoomDirectory
from store import TaskReplicaStore

logger = get_logger(__name__)


@dataclass
class JoinSnapshot:
    room: str
    tasks: List[dict]
    users: List[dict]


class RelayBackend:
    """Server context owning the connection registry, room directory and task store.

    One instance per application; every connection handler and the liveness
    monitor receive it explicitly.
    """

    def __init__(self, send_timeout: Optional[float] = None):
        self.registry = ConnectionRegistry()
        self.rooms = RoomDirectory()
        self.tasks = TaskReplicaStore()
        self.broadcaster = Broadcaster(self.rooms, send_timeout=send_timeout)
        self.started_monotonic = time.monotonic()
        self.started_at = utc_timestamp()
        self._closing: Set[asyncio.Task] = set()
        self._shut_down = False
        logger.info("Initializing RelayBackend")

    def connect(self, websocket) -> Connection:
        return self.registry.register(websocket)

    async def join(self, connection: Connection, room: str, username: str) -> Optional[JoinSnapshot]:
        """Move ``connection`` into ``room``, leaving its previous room first.

        Returns None when the connection was torn down before or during the
        move; a removed connection must never regain room membership.
        """
        if not self.registry.contains(connection):
            logger.debug(f"Ignoring join to {room} from torn-down connection {connection.client_id}")
            return None
        previous = connection.room if connection.joined else None
        if previous is not None and previous != room:
            await self._leave_room(connection, previous)
            if not self.registry.contains(connection):
                logger.debug(f"Connection {connection.client_id} torn down while leaving {previous}")
                return None

        self.rooms.add(room, connection)
        self.registry.assign(connection, username, room)

        if previous == room:
            logger.info(f"User {username} re-joined room {room} ({connection.client_id})")
        else:
            if previous is None:
                logger.info(f"User {username} connected to room {room} ({connection.client_id})")
            else:
                logger.info(f"User {username} moved from {previous} to {room}")
            await self.broadcaster.broadcast(
                room,
                make_frame(USER_JOINED, username=username, room=room),
                exclude=connection,
            )

        return JoinSnapshot(room=room, tasks=self.tasks.list_by_room(room), users=self.users_in(room))

    async def leave(self, connection: Connection) -> None:
        if not connection.joined:
            return
        await self._leave_room(connection, connection.room)

    async def _leave_room(self, connection: Connection, room: str) -> None:
        if not self.rooms.discard(room, connection):
            return
        await self.broadcaster.broadcast(
            room,
            make_frame(USER_LEFT, username=connection.username, room=room),
            exclude=connection,
        )

    async def disconnect(self, connection: Connection) -> None:
        """Single teardown path for close, transport error and liveness timeout. Idempotent."""
        if not self.registry.remove(connection):
            return
        if connection.joined:
            logger.info(f"User {connection.username} disconnected from room {connection.room} ({connection.client_id})")
        else:
            logger.info(f"Connection {connection.client_id} closed before joining")
        await self.leave(connection)

    async def terminate(self, connection: Connection) -> None:
        """Tear down ``connection`` now and close its transport in the background."""
        await self.disconnect(connection)
        task = asyncio.create_task(self._close_quietly(connection))
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)

    async def _close_quietly(self, connection: Connection) -> None:
        try:
            await connection.websocket.close(code=CLOSE_GOING_AWAY)
        except Exception as e:
            logger.debug(f"Error closing WebSocket {connection.client_id}: {e}")

    async def apply_task_update(self, connection: Connection, update_type: str, task: dict) -> dict:
        """Apply a mutation in the sender's room and relay it to everyone else there.

        DELETE is keyed by the connection's room and leaves the payload unstamped.
        """
        room = connection.room
        if update_type == DELETE:
            self.tasks.remove(room, task["id"])
        else:
            task = self.tasks.upsert(room, task)

        logger.info(f"Task {update_type.lower()} by {connection.username} in room {room}: {task.get('title')}")

        await self.broadcaster.broadcast(
            room,
            make_frame(TASK_UPDATE, updateType=update_type, task=task, updatedBy=connection.username, room=room),
            exclude=connection,
        )
        return task

    def tasks_for(self, room: str) -> List[dict]:
        return self.tasks.list_by_room(room)

    def users_in(self, room: str) -> List[dict]:
        users = []
        for member in self.rooms.members_of(room):
            info = self.registry.lookup(member)
            if info:
                users.append({"username": info.username, "connectedAt": info.connected_at})
        return users

    @property
    def uptime(self) -> float:
        return time.monotonic() - self.started_monotonic

    def health(self) -> dict:
        return {
            "status": "healthy",
            "connectedClients": self.registry.count,
            "totalTasks": len(self.tasks),
            "rooms": len(self.rooms),
            "uptime": self.uptime,
            "timestamp": utc_timestamp(),
        }

    def stats(self) -> dict:
        rooms = {}
        for room in self.rooms.names():
            users = self.users_in(room)
            rooms[room] = {
                "connectedUsers": len(self.rooms.members_of(room)),
                "tasks": self.tasks.count_by_room(room),
                "users": users,
            }

        memory = psutil.Process().memory_info()
        return {
            "server": {
                "status": "running",
                "uptime": self.uptime,
                "startTime": self.started_at,
                "currentTime": utc_timestamp(),
            },
            "totals": {
                "connectedClients": self.registry.count,
                "totalTasks": len(self.tasks),
                "activeRooms": len(self.rooms),
            },
            "rooms": rooms,
            "memory": {"rss": memory.rss, "vms": memory.vms},
        }

    async def shutdown(self) -> None:
        """Tell every connection the server is going away and close it."""
        if self._shut_down:
            return
        self._shut_down = True
        connections = self.registry.all()
        logger.info(f"Shutting down collaboration relay, closing {len(connections)} connections")
        for connection in connections:
            await self.broadcaster.send(connection, make_frame(SERVER_SHUTDOWN, message="Server is shutting down"))
        await asyncio.gather(*(self._close_quietly(connection) for connection in connections))
        if self._closing:
            await asyncio.gather(*self._closing, return_exceptions=True)
