from pydantic import BaseModel, ConfigDict
from typing import Literal, Optional


class TaskPayload(BaseModel):
    # Everything besides id and title is opaque to the relay and passed through as sent
    model_config = ConfigDict(extra="allow")

    id: str
    title: Optional[str] = None

class ConnectMessage(BaseModel):
    username: Optional[str] = None
    room: Optional[str] = None

class JoinRoomMessage(BaseModel):
    room: Optional[str] = None

class TaskUpdateMessage(BaseModel):
    updateType: Literal["CREATE", "UPDATE", "DELETE"]
    task: TaskPayload

class GetTasksMessage(BaseModel):
    room: Optional[str] = None
