from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional
from constants import ROOM_CAPACITY
from errors import RoomAlreadyExists, RoomFull, RoomNotFound
from expiry import ExpiryScheduler
from logging_config import get_logger
from room_codes import normalize_room_code

logger = get_logger(__name__)


@dataclass
class Room:
    code: str
    creator_id: str
    creator_name: str
    occupants: List[str] = field(default_factory=list)
    capacity: int = ROOM_CAPACITY
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def is_full(self) -> bool:
        return len(self.occupants) >= self.capacity

    def other_occupants(self, connection_id: str) -> List[str]:
        return [occupant for occupant in self.occupants if occupant != connection_id]

    def other_occupant(self, connection_id: str) -> Optional[str]:
        others = self.other_occupants(connection_id)
        return others[0] if others else None

    def snapshot(self) -> dict:
        return {
            "id": self.code,
            "code": self.code,
            "userCount": len(self.occupants),
            "maxUsers": self.capacity,
            "createdAt": self.created_at.isoformat(),
            "createdBy": self.creator_name,
        }


class LeaveOutcome(str, Enum):
    DELETED = "deleted"
    ONE_REMAINING = "one_remaining"
    UNKNOWN = "unknown"


@dataclass
class LeaveResult:
    outcome: LeaveOutcome
    code: str
    remaining_id: Optional[str] = None
    expiry_token: Optional[int] = None


class RoomStore:
    """In-process rooms keyed by their (uppercase) code.

    Mutations assume a single caller at a time: the event dispatcher is the only
    thing that drives them, which keeps check-then-act sequences atomic.
    """

    def __init__(self, scheduler: ExpiryScheduler, capacity: int = ROOM_CAPACITY):
        self.scheduler = scheduler
        self.capacity = capacity
        self._rooms: Dict[str, Room] = {}

    def create(self, code: str, creator_id: str, creator_name: str) -> Room:
        code = normalize_room_code(code)
        if code in self._rooms:
            raise RoomAlreadyExists(code)
        room = Room(
            code=code,
            creator_id=creator_id,
            creator_name=creator_name,
            occupants=[creator_id],
            capacity=self.capacity,
        )
        self._rooms[code] = room
        # A freed code can be reused; make sure no old timer survives into the new room
        self.scheduler.cancel(code)
        logger.info(f"Room {code} created by {creator_id}. Total rooms: {len(self._rooms)}")
        return room

    def get(self, code: str) -> Optional[Room]:
        return self._rooms.get(normalize_room_code(code))

    def join(self, code: str, connection_id: str) -> Room:
        code = normalize_room_code(code)
        room = self._rooms.get(code)
        if room is None:
            logger.info(f"Room {code} does not exist. Available rooms: {list(self._rooms)}")
            raise RoomNotFound()
        if connection_id in room.occupants:
            return room
        if room.is_full:
            logger.info(f"Room {code} is full ({len(room.occupants)}/{room.capacity})")
            raise RoomFull(f"Room is full (maximum {room.capacity} people)")

        room.occupants.append(connection_id)
        self.scheduler.cancel(code)
        logger.info(f"{connection_id} joined room {code}. Users: {len(room.occupants)}/{room.capacity}")
        return room

    def leave(self, code: str, connection_id: str) -> LeaveResult:
        code = normalize_room_code(code)
        room = self._rooms.get(code)
        if room is None or connection_id not in room.occupants:
            return LeaveResult(LeaveOutcome.UNKNOWN, code)

        room.occupants.remove(connection_id)
        if not room.occupants:
            self.delete(code)
            logger.info(f"Room {code} deleted (empty)")
            return LeaveResult(LeaveOutcome.DELETED, code)

        token = self.scheduler.arm(code)
        return LeaveResult(LeaveOutcome.ONE_REMAINING, code, remaining_id=room.occupants[0], expiry_token=token)

    def expire(self, code: str, token: int) -> Optional[Room]:
        """Delete `code` if the timer identified by `token` is still the live one
        and the room still has a single occupant. Returns the expired room."""
        if not self.scheduler.is_current(code, token):
            logger.debug(f"Ignoring stale expiry for room {code}")
            return None
        self.scheduler.discard(code, token)

        room = self._rooms.get(code)
        if room is None or len(room.occupants) != 1:
            return None
        del self._rooms[code]
        logger.info(f"Room {code} expired after timeout")
        return room

    def delete(self, code: str) -> Optional[Room]:
        code = normalize_room_code(code)
        self.scheduler.cancel(code)
        return self._rooms.pop(code, None)

    def rooms(self) -> List[Room]:
        return list(self._rooms.values())

    def __contains__(self, code: str) -> bool:
        return normalize_room_code(code) in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)
