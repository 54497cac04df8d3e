import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Set, Tuple, Type
from pydantic import ValidationError
from constants import EVENT_QUEUE_SIZE
from logging_config import get_logger
from orchestrator import SessionOrchestrator
from schemas.events import (
    AnswerCallEvent,
    CallUserEvent,
    ClientEvent,
    CreateRoomEvent,
    JoinRoomEvent,
    RegisterEvent,
    ScreenShareEvent,
    SignalEvent,
    TargetedEvent,
)

logger = get_logger(__name__)


@dataclass
class Connected:
    connection_id: str


@dataclass
class Disconnected:
    connection_id: str


@dataclass
class ClientMessage:
    connection_id: str
    event: str
    data: Any = field(default_factory=dict)


@dataclass
class RoomExpiry:
    code: str
    token: int


Handler = Callable[[SessionOrchestrator, str, Any], Awaitable[None]]

# Client event name -> (payload model, handler)
ROUTES: Dict[str, Tuple[Type[ClientEvent], Handler]] = {
    "register": (RegisterEvent, lambda o, cid, e: o.register(cid, e.name or "")),
    "createRoom": (CreateRoomEvent, lambda o, cid, e: o.create_room(cid, e.name or "")),
    "joinRoom": (JoinRoomEvent, lambda o, cid, e: o.join_room(cid, e.code, e.name or "")),
    "callUser": (CallUserEvent, lambda o, cid, e: o.call_user(cid, e.userToCall, e.signalData, e.name or "")),
    "answerCall": (AnswerCallEvent, lambda o, cid, e: o.answer_call(cid, e.signal, e.to)),
    "rejectCall": (TargetedEvent, lambda o, cid, e: o.reject_call(cid, e.to)),
    "endCall": (TargetedEvent, lambda o, cid, e: o.end_call(cid, e.to)),
    "signal": (SignalEvent, lambda o, cid, e: o.signal(cid, e.signal, e.to)),
    "screenShareStarted": (
        ScreenShareEvent,
        lambda o, cid, e: o.screen_share(cid, "screenShareStarted", e.name or "", e.roomId or ""),
    ),
    "screenShareStopped": (
        ScreenShareEvent,
        lambda o, cid, e: o.screen_share(cid, "screenShareStopped", e.name or "", e.roomId or ""),
    ),
}


class EventDispatcher:
    """Serializes every state-changing event through one queue and one worker.

    Socket connects, client frames, disconnects and expiry timer firings all
    become messages on the same queue, so they are applied strictly one after
    another in arrival order.
    """

    def __init__(self, orchestrator: SessionOrchestrator, queue_size: int = EVENT_QUEUE_SIZE):
        self.orchestrator = orchestrator
        # Bounded: a full queue makes readers wait in submit(), which stops them reading their socket
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._worker: Optional[asyncio.Task] = None
        self._pending_expiries: Set[asyncio.Task] = set()

    def start(self):
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run())
            logger.info("Event dispatcher started")

    async def stop(self):
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        for task in list(self._pending_expiries):
            task.cancel()
        logger.info("Event dispatcher stopped")

    async def connect(self, connection_id: str):
        await self._queue.put(Connected(connection_id))

    async def disconnect(self, connection_id: str):
        await self._queue.put(Disconnected(connection_id))

    async def submit(self, connection_id: str, event: str, data: Any = None):
        await self._queue.put(ClientMessage(connection_id, event, data if data is not None else {}))

    def expire_room(self, code: str, token: int):
        """Expiry timer callback; runs on the event loop outside the worker."""
        try:
            self._queue.put_nowait(RoomExpiry(code, token))
        except asyncio.QueueFull:
            # An expiry must not be lost, so wait for room instead of dropping it
            task = asyncio.create_task(self._queue.put(RoomExpiry(code, token)))
            self._pending_expiries.add(task)
            task.add_done_callback(self._pending_expiries.discard)

    async def drain(self):
        """Wait until everything queued so far has been handled."""
        await self._queue.join()

    async def _run(self):
        while True:
            message = await self._queue.get()
            try:
                await self.handle(message)
            except Exception as e:
                logger.error(f"Error handling {message}: {e}", exc_info=True)
            finally:
                self._queue.task_done()

    async def handle(self, message):
        if isinstance(message, ClientMessage):
            await self._handle_client_message(message)
        elif isinstance(message, Connected):
            await self.orchestrator.connect(message.connection_id)
        elif isinstance(message, Disconnected):
            await self.orchestrator.disconnect(message.connection_id)
        elif isinstance(message, RoomExpiry):
            await self.orchestrator.expire_room(message.code, message.token)
        else:
            logger.error(f"Unknown dispatcher message: {message!r}")

    async def _handle_client_message(self, message: ClientMessage):
        route = ROUTES.get(message.event)
        if route is None:
            logger.warning(f"Unknown event '{message.event}' from connection {message.connection_id}")
            return
        model, handler = route
        data = message.data if isinstance(message.data, dict) else {}
        try:
            payload = model.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Malformed {message.event} from connection {message.connection_id}: {e.errors()}")
            return
        await handler(self.orchestrator, message.connection_id, payload)
