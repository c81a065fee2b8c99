from datetime import datetime, timezone

# Client -> server
CONNECT = "CONNECT"
JOIN_ROOM = "JOIN_ROOM"
TASK_UPDATE = "TASK_UPDATE"
GET_TASKS = "GET_TASKS"
PING = "PING"
PONG = "PONG"

# Server -> client
CONNECTED = "CONNECTED"
INITIAL_TASKS = "INITIAL_TASKS"
ROOM_TASKS = "ROOM_TASKS"
TASKS_LIST = "TASKS_LIST"
USER_JOINED = "USER_JOINED"
USER_LEFT = "USER_LEFT"
ERROR = "ERROR"
SERVER_SHUTDOWN = "SERVER_SHUTDOWN"

# TASK_UPDATE updateType values
CREATE = "CREATE"
UPDATE = "UPDATE"
DELETE = "DELETE"

# **Example frames**
# - `{"type": "CONNECT", "username": "alice", "room": "proj1"}`
# - `{"type": "TASK_UPDATE", "updateType": "CREATE", "task": {"id": "t1", "title": "Fix bug"}}`
# - `{"type": "TASK_UPDATE", "updateType": "CREATE", "task": {..., "room": "proj1"}, "updatedBy": "alice", "room": "proj1", "timestamp": "..."}`


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def make_frame(message_type: str, **fields) -> dict:
    """Build an outbound frame stamped with the current server time."""
    frame = {"type": message_type}
    frame.update(fields)
    frame["timestamp"] = utc_timestamp()
    return frame
