from typing import Iterable, Protocol
from constants import RELAY_REQUIRE_SHARED_ROOM
from logging_config import get_logger
from registry import ConnectionRegistry

logger = get_logger(__name__)


class Transport(Protocol):
    async def send(self, connection_id: str, event: str, data: dict = None) -> bool:
        ...


class SignalingRelay:
    """Forwards signaling events to a single target connection.

    Payloads are passed through untouched. A target that is not registered is
    dropped quietly: during call teardown it is normal for one side to be gone.
    """

    def __init__(self, registry: ConnectionRegistry, transport: Transport, require_shared_room: bool = RELAY_REQUIRE_SHARED_ROOM):
        self.registry = registry
        self.transport = transport
        self.require_shared_room = require_shared_room

    async def relay(self, event: str, sender_id: str, target_id, payload: dict) -> bool:
        if not target_id or not isinstance(target_id, str) or target_id not in self.registry:
            logger.debug(f"Dropping {event} from {sender_id}: target {target_id} is not connected")
            return False

        if self.require_shared_room and not self._share_room(sender_id, target_id):
            logger.warning(f"Dropping {event} from {sender_id}: target {target_id} is not in the same room")
            return False

        logger.debug(f"Relaying {event} from {sender_id} to {target_id}")
        return await self.transport.send(target_id, event, payload)

    async def relay_to_many(self, event: str, sender_id: str, target_ids: Iterable[str], payload: dict) -> int:
        delivered = 0
        for target_id in target_ids:
            if target_id == sender_id:
                continue
            if await self.relay(event, sender_id, target_id, payload):
                delivered += 1
        return delivered

    def _share_room(self, sender_id: str, target_id: str) -> bool:
        sender = self.registry.get(sender_id)
        target = self.registry.get(target_id)
        if sender is None or target is None or not sender.room_code:
            return False
        return sender.room_code == target.room_code
