import asyncio
import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, Set
from fastapi import WebSocket
from constants import OUTBOUND_QUEUE_SIZE, SEND_TIMEOUT_SECONDS
from logging_config import get_logger

logger = get_logger(__name__)

# Writes one event to the client; transport specific (raw WebSocket or Socket.IO)
Writer = Callable[[str, Any], Awaitable[None]]
Closer = Callable[[], Awaitable[None]]


@dataclass
class _Outbox:
    queue: asyncio.Queue
    writer: Writer
    close: Optional[Closer]
    task: Optional[asyncio.Task] = None


class ConnectionManager:
    """Delivers outbound events to live connections.

    Each connection gets its own bounded queue drained by its own writer task,
    so ``send`` never waits on a socket. A connection whose queue overflows, or
    whose socket write does not finish within ``send_timeout``, is closed
    rather than allowed to hold up anyone else.
    """

    def __init__(self, queue_size: int = OUTBOUND_QUEUE_SIZE, send_timeout: float = SEND_TIMEOUT_SECONDS):
        self.queue_size = queue_size
        self.send_timeout = send_timeout
        self._outboxes: Dict[str, _Outbox] = {}
        self._closing: Set[asyncio.Task] = set()

    def attach(self, connection_id: str, writer: Writer, close: Closer = None):
        self.detach(connection_id)
        outbox = _Outbox(queue=asyncio.Queue(maxsize=self.queue_size), writer=writer, close=close)
        outbox.task = asyncio.create_task(self._drain(connection_id, outbox))
        self._outboxes[connection_id] = outbox
        logger.debug(f"Attached connection {connection_id} (local connections: {len(self._outboxes)})")

    def attach_websocket(self, connection_id: str, websocket: WebSocket):
        """Attach a raw WebSocket; frames are ``{"event": <name>, "data": <object>}``."""

        async def write(event: str, data: Any):
            await websocket.send_text(json.dumps({"event": event, "data": data}))

        self.attach(connection_id, write, close=websocket.close)

    def detach(self, connection_id: str) -> bool:
        outbox = self._outboxes.pop(connection_id, None)
        if outbox is None:
            return False
        if outbox.task is not None:
            outbox.task.cancel()
        return True

    def is_attached(self, connection_id: str) -> bool:
        return connection_id in self._outboxes

    async def send(self, connection_id: str, event: str, data: dict = None) -> bool:
        outbox = self._outboxes.get(connection_id)
        if outbox is None:
            logger.debug(f"No socket for connection {connection_id}, dropping {event}")
            return False
        try:
            outbox.queue.put_nowait((event, data if data is not None else {}))
        except asyncio.QueueFull:
            self._evict(connection_id, outbox, f"outbound queue full ({self.queue_size} frames)")
            return False
        return True

    async def flush(self, connection_ids: Iterable[str] = None):
        """Wait until frames queued so far have been written or dropped."""
        if connection_ids is None:
            connection_ids = list(self._outboxes)
        for connection_id in connection_ids:
            outbox = self._outboxes.get(connection_id)
            if outbox is not None:
                await outbox.queue.join()

    def close_all(self):
        for connection_id in list(self._outboxes):
            self.detach(connection_id)

    def __len__(self) -> int:
        return len(self._outboxes)

    async def _drain(self, connection_id: str, outbox: _Outbox):
        while True:
            event, data = await outbox.queue.get()
            try:
                await asyncio.wait_for(outbox.writer(event, data), timeout=self.send_timeout)
            except asyncio.TimeoutError:
                self._evict(connection_id, outbox, f"write of {event} stalled for {self.send_timeout:g}s")
                return
            except Exception as e:
                # The peer went away; its disconnect cleans up the rest
                logger.debug(f"Error sending {event} to connection {connection_id}: {e}")
            finally:
                outbox.queue.task_done()

    def _evict(self, connection_id: str, outbox: _Outbox, reason: str):
        logger.warning(f"Closing connection {connection_id}: {reason}")
        if self._outboxes.get(connection_id) is outbox:
            del self._outboxes[connection_id]
        # Unblock anyone waiting in flush()
        while not outbox.queue.empty():
            outbox.queue.get_nowait()
            outbox.queue.task_done()
        if outbox.task is not None and outbox.task is not asyncio.current_task():
            outbox.task.cancel()
        if outbox.close is not None:
            task = asyncio.create_task(self._close(connection_id, outbox.close))
            self._closing.add(task)
            task.add_done_callback(self._closing.discard)

    async def _close(self, connection_id: str, close: Closer):
        try:
            await asyncio.wait_for(close(), timeout=self.send_timeout)
        except Exception as e:
            logger.debug(f"Error closing connection {connection_id}: {e}")
