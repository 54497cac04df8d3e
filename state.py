from dataclasses import dataclass
from typing import Optional
import constants
from backend import RoomStore
from connection_manager import ConnectionManager
from dispatcher import EventDispatcher
from expiry import ExpiryScheduler
from orchestrator import SessionOrchestrator
from registry import ConnectionRegistry
from relay import SignalingRelay


@dataclass
class SignalingState:
    """Everything the server holds in memory for the lifetime of the process."""

    registry: ConnectionRegistry
    scheduler: ExpiryScheduler
    store: RoomStore
    connections: ConnectionManager
    relay: SignalingRelay
    orchestrator: SessionOrchestrator
    dispatcher: EventDispatcher


def build_state(
    grace_seconds: Optional[float] = None,
    client_url: Optional[str] = None,
    require_shared_room: Optional[bool] = None,
    loop=None,
) -> SignalingState:
    registry = ConnectionRegistry()
    scheduler = ExpiryScheduler(
        grace_seconds=constants.ROOM_EXPIRY_SECONDS if grace_seconds is None else grace_seconds,
        loop=loop,
    )
    store = RoomStore(scheduler)
    connections = ConnectionManager()
    relay = SignalingRelay(
        registry,
        connections,
        require_shared_room=constants.RELAY_REQUIRE_SHARED_ROOM if require_shared_room is None else require_shared_room,
    )
    orchestrator = SessionOrchestrator(
        registry,
        store,
        relay,
        connections,
        client_url=client_url or constants.CLIENT_URL,
    )
    dispatcher = EventDispatcher(orchestrator)
    scheduler.on_expire = dispatcher.expire_room
    return SignalingState(
        registry=registry,
        scheduler=scheduler,
        store=store,
        connections=connections,
        relay=relay,
        orchestrator=orchestrator,
        dispatcher=dispatcher,
    )
