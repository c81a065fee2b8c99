from typing import Dict, List, Tuple

from logging_config import get_logger

logger = get_logger(__name__)


class TaskReplicaStore:
    """Last-known state of every task, keyed by (room, task id).

    Purely in memory; a restarted relay starts empty and clients repopulate it.
    """

    def __init__(self):
        self._tasks: Dict[Tuple[str, str], dict] = {}

    def upsert(self, room: str, task: dict) -> dict:
        """Insert or replace a task and return the stored copy, stamped with ``room``."""
        stored = dict(task)
        stored["room"] = room
        key = (room, stored["id"])
        replaced = key in self._tasks
        self._tasks[key] = stored
        logger.debug(f"{'Replaced' if replaced else 'Stored'} task {stored['id']} in room {room}")
        return stored

    def remove(self, room: str, task_id: str) -> bool:
        removed = self._tasks.pop((room, task_id), None) is not None
        logger.debug(f"Delete task {task_id} in room {room}: removed={removed}")
        return removed

    def list_by_room(self, room: str) -> List[dict]:
        return [task for (task_room, _), task in self._tasks.items() if task_room == room]

    def count_by_room(self, room: str) -> int:
        return sum(1 for task_room, _ in self._tasks if task_room == room)

    def __len__(self) -> int:
        return len(self._tasks)
