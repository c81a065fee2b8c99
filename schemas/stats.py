from pydantic import BaseModel
from typing import Dict


class HealthResponse(BaseModel):
    status: str
    connectedClients: int
    totalTasks: int
    rooms: int
    uptime: float
    timestamp: str

class OnlineUser(BaseModel):
    username: str
    connectedAt: str

class RoomStats(BaseModel):
    connectedUsers: int
    tasks: int
    users: list[OnlineUser]

class ServerInfo(BaseModel):
    status: str
    uptime: float
    startTime: str
    currentTime: str

class Totals(BaseModel):
    connectedClients: int
    totalTasks: int
    activeRooms: int

class StatsResponse(BaseModel):
    server: ServerInfo
    totals: Totals
    rooms: Dict[str, RoomStats]
    memory: Dict[str, int]
