from datetime import datetime, timezone
from fastapi import APIRouter, Request
from constants import APP_VERSION
from routers.rooms import room_snapshots
from schemas.rooms import HealthResponse

health_router = APIRouter(tags=["health"])

FEATURES = ["room-codes", "two-party-rooms", "webrtc-signaling"]


@health_router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    state = request.app.state.signaling
    return HealthResponse(
        status="OK",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=APP_VERSION,
        activeUsers=len(state.registry),
        activeRooms=len(state.store),
        features=FEATURES,
        rooms=room_snapshots(state.store),
    )
