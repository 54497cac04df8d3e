from typing import Any, Optional
import socketio
from constants import (
    ALLOWED_ORIGINS,
    SOCKETIO_MAX_BUFFER_SIZE,
    SOCKETIO_PING_INTERVAL,
    SOCKETIO_PING_TIMEOUT,
)
from dispatcher import ROUTES
from logging_config import get_logger

logger = get_logger(__name__)


def create_socketio_server() -> socketio.AsyncServer:
    """Socket.IO server offering WebSocket with long-polling fallback."""
    return socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins="*" if "*" in ALLOWED_ORIGINS else ALLOWED_ORIGINS,
        ping_timeout=SOCKETIO_PING_TIMEOUT,
        ping_interval=SOCKETIO_PING_INTERVAL,
        max_http_buffer_size=SOCKETIO_MAX_BUFFER_SIZE,
        logger=False,
        engineio_logger=False,
    )


def to_socketio_args(event: str, data: Any):
    """Socket.IO clients expect ``me`` as the bare id and ``callEnded`` with no argument."""
    if event == "me":
        return data.get("id") if isinstance(data, dict) else data
    if event == "callEnded":
        return None
    return data


class SocketIOGateway:
    """Feeds Socket.IO connections into the event dispatcher.

    The Socket.IO ``sid`` is the connection id, and every client event name in
    the dispatcher's route table is registered as a Socket.IO handler.
    """

    def __init__(self, sio: socketio.AsyncServer):
        self.sio = sio
        self.state = None
        sio.on("connect", self.on_connect)
        sio.on("disconnect", self.on_disconnect)
        for event in ROUTES:
            sio.on(event, self._event_handler(event))

    def bind(self, state):
        self.state = state

    async def on_connect(self, sid: str, environ: dict, auth: Optional[dict] = None):
        if self.state is None:
            logger.error(f"Rejecting Socket.IO connection {sid}: server is not ready")
            return False
        self.state.connections.attach(sid, self._writer(sid), close=lambda: self.sio.disconnect(sid))
        await self.state.dispatcher.connect(sid)

    async def on_disconnect(self, sid: str, *args):
        if self.state is None:
            return
        self.state.connections.detach(sid)
        await self.state.dispatcher.disconnect(sid)

    async def on_event(self, event: str, sid: str, data: Any = None):
        if self.state is None:
            return
        await self.state.dispatcher.submit(sid, event, data)

    def _event_handler(self, event: str):
        async def handler(sid, data=None, *args):
            await self.on_event(event, sid, data)
        return handler

    def _writer(self, sid: str):
        async def write(event: str, data: Any):
            args = to_socketio_args(event, data)
            if args is None:
                await self.sio.emit(event, to=sid)
            else:
                await self.sio.emit(event, args, to=sid)
        return write
