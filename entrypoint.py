import uvicorn
from constants import HOST, LOG_FILE, LOG_LEVEL, PORT, RELOAD
from logging_config import setup_logging

# Setup logging before importing app
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)

from app import asgi_app
from logging_config import get_logger

logger = get_logger(__name__)


def main():
    logger.info(f"Starting PairCall signaling server on {HOST}:{PORT}")
    if RELOAD:
        uvicorn.run("app:asgi_app", host=HOST, port=PORT, reload=True)
    else:
        uvicorn.run(asgi_app, host=HOST, port=PORT)


if __name__ == "__main__":
    main()
