from contextlib import asynccontextmanager
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from routers.health import health_router
from routers.rooms import rooms_router
from socketio_server import SocketIOGateway, create_socketio_server
from state import build_state
from constants import ALLOWED_ORIGINS, APP_VERSION, LOG_FILE, LOG_LEVEL
from logging_config import get_logger, setup_logging
import socketio
import uuid
import json

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)

sio = create_socketio_server()
sio_gateway = SocketIOGateway(sio)


@asynccontextmanager
async def lifespan(app: FastAPI):
    state = build_state()
    app.state.signaling = state
    sio_gateway.bind(state)
    state.dispatcher.start()
    logger.info("Room-based signaling server ready (2-person rooms)")
    try:
        yield
    finally:
        logger.info("Shutting down, cancelling pending room expiry timers")
        state.scheduler.cancel_all()
        await state.dispatcher.stop()
        state.connections.close_all()
        sio_gateway.bind(None)


app = FastAPI(title="PairCall signaling", version=APP_VERSION, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials="*" not in ALLOWED_ORIGINS,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(rooms_router)

logger.info("FastAPI application initialized")

# Socket.IO (WebSocket + polling) under /socket.io/, everything else goes to FastAPI
asgi_app = socketio.ASGIApp(sio, other_asgi_app=app)


def parse_frame(raw: str):
    """Return (event, data) for a well-formed frame, otherwise None."""
    try:
        message = json.loads(raw)
    except json.JSONDecodeError:
        return None
    if not isinstance(message, dict):
        return None
    event = message.get("event")
    if not isinstance(event, str) or not event:
        return None
    return event, message.get("data") or {}


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Signaling socket. One connection id per socket, announced to the client
    in a ``me`` event right after the handshake."""
    state = websocket.app.state.signaling
    await websocket.accept()

    connection_id = uuid.uuid4().hex
    state.connections.attach_websocket(connection_id, websocket)
    await state.dispatcher.connect(connection_id)

    try:
        while True:
            data = await websocket.receive_text()
            frame = parse_frame(data)
            if frame is None:
                logger.warning(f"Dropping malformed frame from connection {connection_id}")
                continue
            event, payload = frame
            await state.dispatcher.submit(connection_id, event, payload)
    except WebSocketDisconnect:
        logger.debug(f"WebSocket closed for connection {connection_id}")
    except Exception as e:
        logger.error(f"Error receiving from connection {connection_id}: {e}", exc_info=True)
    finally:
        state.connections.detach(connection_id)
        await state.dispatcher.disconnect(connection_id)
