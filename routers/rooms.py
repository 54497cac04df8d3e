from fastapi import APIRouter, HTTPException, Request
from schemas.rooms import RoomDetailsResponse, RoomsResponse
from logging_config import get_logger

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/api/rooms", tags=["rooms"])


def room_snapshots(store) -> list:
    return [room.snapshot() for room in store.rooms()]


@rooms_router.get("", response_model=RoomsResponse)
async def list_rooms(request: Request):
    store = request.app.state.signaling.store
    return RoomsResponse(rooms=room_snapshots(store))


@rooms_router.get("/{room_code}", response_model=RoomDetailsResponse)
async def get_room_details(room_code: str, request: Request):
    """
    Look up a single room by code (case and surrounding whitespace are ignored).

    Returns the room snapshot plus:
    - isFull: whether a join would be rejected with ROOM_FULL
    - expiresAt: when the room will expire if nobody rejoins, or null
    """
    state = request.app.state.signaling
    room = state.store.get(room_code)
    if room is None:
        logger.info(f"Room details failed: Room {room_code} not found")
        raise HTTPException(status_code=404, detail="Room not found")

    expires_at = state.scheduler.expires_at(room.code)
    return RoomDetailsResponse(
        **room.snapshot(),
        isFull=room.is_full,
        expiresAt=expires_at.isoformat() if expires_at else None,
    )
