import random
import string
from typing import Callable, Container
from constants import ROOM_CODE_LENGTH, ROOM_CODE_MAX_ATTEMPTS
from errors import CodeExhausted
from logging_config import get_logger

logger = get_logger(__name__)

ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_room_code(length: int = ROOM_CODE_LENGTH) -> str:
    # Codes are short-lived and shared by hand, so plain `random` is enough
    return ''.join(random.choices(ROOM_CODE_ALPHABET, k=length))


def normalize_room_code(code) -> str:
    if not code:
        return ""
    return str(code).strip().upper()


def allocate_room_code(
    taken: Container[str],
    generate: Callable[[], str] = generate_room_code,
    max_attempts: int = ROOM_CODE_MAX_ATTEMPTS,
) -> str:
    """Draw codes until one is not in `taken`, giving up after `max_attempts` draws."""
    for attempt in range(1, max_attempts + 1):
        candidate = generate()
        if candidate not in taken:
            return candidate
        logger.debug(f"Room code {candidate} collided (attempt {attempt}/{max_attempts})")
    logger.warning(f"Could not allocate a free room code after {max_attempts} attempts")
    raise CodeExhausted()
