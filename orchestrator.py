from typing import Any, Callable, Optional
from backend import LeaveOutcome, RoomStore
from constants import CLIENT_URL, ROOM_CODE_MAX_ATTEMPTS
from errors import CodeExhausted, RoomAlreadyExists, RoomError
from logging_config import get_logger
from registry import ConnectionRegistry
from relay import SignalingRelay, Transport
from room_codes import allocate_room_code, generate_room_code, normalize_room_code

logger = get_logger(__name__)

ROOM_EXPIRED_MESSAGE = "Room expired due to inactivity. Please create a new room."


class SessionOrchestrator:
    """Connection and room lifecycle.

    Every public coroutine here is driven by the event dispatcher, one at a time.
    State changes happen synchronously before the first ``await`` of each
    handler, so a capacity check and the append that follows it can never be
    interleaved with another client's event.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        store: RoomStore,
        relay: SignalingRelay,
        transport: Transport,
        client_url: str = CLIENT_URL,
        code_generator: Callable[[], str] = generate_room_code,
        max_code_attempts: int = ROOM_CODE_MAX_ATTEMPTS,
    ):
        self.registry = registry
        self.store = store
        self.relay = relay
        self.transport = transport
        self.client_url = client_url.rstrip("/")
        self.code_generator = code_generator
        self.max_code_attempts = max_code_attempts

    def share_url(self, code: str) -> str:
        return f"{self.client_url}?room={code}"

    async def connect(self, connection_id: str):
        self.registry.register(connection_id)
        logger.info(f"User connected: {connection_id}")
        await self.transport.send(connection_id, "me", {"id": connection_id})

    async def register(self, connection_id: str, name: str):
        self.registry.set_name(connection_id, name)
        if connection_id in self.registry:
            logger.info(f"User {connection_id} registered as: {name}")

    async def create_room(self, connection_id: str, name: str):
        connection = self.registry.get(connection_id)
        if connection is None:
            logger.warning(f"Ignoring createRoom from unknown connection {connection_id}")
            return
        name = name or connection.name
        logger.info(f"{name} ({connection_id}) creating room")

        try:
            code = allocate_room_code(self.store, self.code_generator, self.max_code_attempts)
            room = self.store.create(code, connection_id, name)
        except CodeExhausted as e:
            await self._room_error(connection_id, e)
            return
        except RoomAlreadyExists as e:
            logger.error(f"Room store refused a code that passed the collision check: {e}", exc_info=True)
            await self._room_error(connection_id, CodeExhausted())
            return

        previous_code = connection.room_code
        self.registry.set_room(connection_id, room.code)
        if previous_code and previous_code != room.code:
            await self._leave_room(connection_id, previous_code)

        await self.transport.send(connection_id, "roomCreated", {
            "roomId": room.code,
            "roomCode": room.code,
            "message": "Room created successfully",
            "shareUrl": self.share_url(room.code),
        })

    async def join_room(self, connection_id: str, room_code: str, name: str):
        connection = self.registry.get(connection_id)
        if connection is None:
            logger.warning(f"Ignoring joinRoom from unknown connection {connection_id}")
            return
        name = name or connection.name
        code = normalize_room_code(room_code)
        logger.info(f"{name} ({connection_id}) attempting to join room: {code}")

        try:
            room = self.store.join(code, connection_id)
        except RoomError as e:
            logger.warning(f"Join of room {code} by {connection_id} rejected: {e.code}")
            await self._room_error(connection_id, e)
            return

        previous_code = connection.room_code
        self.registry.set_room(connection_id, room.code)
        if previous_code and previous_code != room.code:
            await self._leave_room(connection_id, previous_code)

        other_id = room.other_occupant(connection_id)
        if other_id and previous_code != room.code:
            await self.transport.send(other_id, "userJoined", {
                "userId": connection_id,
                "name": name,
                "message": f"{name} joined the room",
                "roomCode": room.code,
            })

        await self.transport.send(connection_id, "roomJoined", {
            "roomId": room.code,
            "roomCode": room.code,
            "message": "Successfully joined room",
            "otherUser": other_id,
            "createdBy": room.creator_name,
        })

    async def call_user(self, connection_id: str, user_to_call: Optional[str], signal_data: Any, name: str):
        logger.info(f"{name} ({connection_id}) calling {user_to_call}")
        await self.relay.relay("callUser", connection_id, user_to_call, {
            "signal": signal_data,
            "from": connection_id,
            "name": name,
            "callerId": connection_id,
        })

    async def answer_call(self, connection_id: str, signal: Any, to: Optional[str]):
        logger.info(f"{connection_id} answering call from {to}")
        await self.relay.relay("callAccepted", connection_id, to, {"signal": signal})

    async def reject_call(self, connection_id: str, to: Optional[str]):
        logger.info(f"{connection_id} rejected call from {to}")
        await self.relay.relay("callRejected", connection_id, to, {"reason": "Call rejected"})

    async def end_call(self, connection_id: str, to: Optional[str]):
        if not to:
            return
        logger.info(f"{connection_id} ending call with {to}")
        await self.relay.relay("callEnded", connection_id, to, {})

    async def signal(self, connection_id: str, signal: Any, to: Optional[str]):
        await self.relay.relay("signal", connection_id, to, {"signal": signal, "from": connection_id})

    async def screen_share(self, connection_id: str, event: str, name: str, room_id: str):
        """Forward a screen-share start/stop notice to everyone else in ``room_id``."""
        room = self.store.get(room_id)
        if room is None:
            logger.debug(f"Dropping {event} from {connection_id}: room {room_id} does not exist")
            return
        logger.info(f"{name} ({connection_id}) {event} in room {room.code}")
        await self.relay.relay_to_many(event, connection_id, room.other_occupants(connection_id), {
            "from": connection_id,
            "name": name,
            "roomId": room.code,
        })

    async def disconnect(self, connection_id: str):
        logger.info(f"User disconnected: {connection_id}")
        connection = self.registry.remove(connection_id)
        if connection and connection.room_code:
            await self._leave_room(connection_id, connection.room_code)

    async def expire_room(self, code: str, token: int):
        room = self.store.expire(code, token)
        if room is None:
            return
        remaining_id = room.occupants[0]
        self.registry.set_room(remaining_id, None)
        await self.transport.send(remaining_id, "roomExpired", {
            "message": ROOM_EXPIRED_MESSAGE,
            "roomCode": room.code,
        })

    async def _leave_room(self, connection_id: str, code: str):
        result = self.store.leave(code, connection_id)
        if result.outcome is LeaveOutcome.ONE_REMAINING:
            await self.transport.send(result.remaining_id, "userLeft", {
                "userId": connection_id,
                "message": "User left the room",
            })

    async def _room_error(self, connection_id: str, error: RoomError):
        await self.transport.send(connection_id, "roomError", error.to_payload())
