import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 4001))
RELOAD = os.getenv("RELOAD", "false").lower() == "true"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

APP_VERSION = os.getenv("APP_VERSION", "2.0.0")

# Base URL of the web client, used to build share links
CLIENT_URL = os.getenv("CLIENT_URL", "http://localhost:3000")
ALLOWED_ORIGINS = [origin.strip() for origin in os.getenv("ALLOWED_ORIGINS", "*").split(",") if origin.strip()]

ROOM_CODE_LENGTH = int(os.getenv("ROOM_CODE_LENGTH", 6))
ROOM_CODE_MAX_ATTEMPTS = int(os.getenv("ROOM_CODE_MAX_ATTEMPTS", 10))
ROOM_CAPACITY = 2
ROOM_EXPIRY_SECONDS = float(os.getenv("ROOM_EXPIRY_SECONDS", 120))

# When true, signaling events are only relayed between occupants of the same room
RELAY_REQUIRE_SHARED_ROOM = os.getenv("RELAY_REQUIRE_SHARED_ROOM", "false").lower() == "true"

# Back-pressure limits: inbound events waiting for the dispatcher, and frames
# waiting to be written to one connection
EVENT_QUEUE_SIZE = int(os.getenv("EVENT_QUEUE_SIZE", 10000))
OUTBOUND_QUEUE_SIZE = int(os.getenv("OUTBOUND_QUEUE_SIZE", 256))
# A connection whose socket write takes longer than this is closed
SEND_TIMEOUT_SECONDS = float(os.getenv("SEND_TIMEOUT_SECONDS", 5))

SOCKETIO_PING_TIMEOUT = int(os.getenv("SOCKETIO_PING_TIMEOUT", 30))
SOCKETIO_PING_INTERVAL = int(os.getenv("SOCKETIO_PING_INTERVAL", 15))
SOCKETIO_MAX_BUFFER_SIZE = int(os.getenv("SOCKETIO_MAX_BUFFER_SIZE", 1_000_000))
