from pydantic import BaseModel
from typing import List, Optional


class RoomSnapshot(BaseModel):
    id: str
    code: str
    userCount: int
    maxUsers: int
    createdAt: str
    createdBy: Optional[str] = None


class RoomsResponse(BaseModel):
    rooms: List[RoomSnapshot]


class RoomDetailsResponse(RoomSnapshot):
    isFull: bool
    expiresAt: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    version: str
    activeUsers: int
    activeRooms: int
    features: List[str]
    rooms: List[RoomSnapshot]
