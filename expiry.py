import asyncio
import itertools
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional
from constants import ROOM_EXPIRY_SECONDS
from logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class _Timer:
    token: int
    handle: asyncio.TimerHandle
    expires_at: datetime


class ExpiryScheduler:
    """One cancellable deferred expiry per room code.

    The scheduler never touches room state itself. When a timer fires it hands
    ``(code, token)`` to ``on_expire``, which is expected to enqueue the expiry
    on the same serialized path client events take. Each arming gets a fresh
    token so a firing that raced with a later re-arm can be told apart.
    """

    def __init__(self, grace_seconds: float = ROOM_EXPIRY_SECONDS, on_expire: Callable[[str, int], None] = None, loop=None):
        self.grace_seconds = grace_seconds
        self.on_expire = on_expire
        self._loop = loop
        self._timers: Dict[str, _Timer] = {}
        self._tokens = itertools.count(1)

    def arm(self, code: str) -> int:
        self.cancel(code)
        loop = self._loop or asyncio.get_running_loop()
        token = next(self._tokens)
        handle = loop.call_later(self.grace_seconds, self._fire, code, token)
        self._timers[code] = _Timer(
            token=token,
            handle=handle,
            expires_at=datetime.now() + timedelta(seconds=self.grace_seconds),
        )
        logger.info(f"Room {code} will expire in {self.grace_seconds:g} seconds unless rejoined")
        return token

    def cancel(self, code: str) -> bool:
        timer = self._timers.pop(code, None)
        if timer is None:
            return False
        timer.handle.cancel()
        logger.debug(f"Cancelled expiry timer for room {code}")
        return True

    def is_current(self, code: str, token: int) -> bool:
        timer = self._timers.get(code)
        return timer is not None and timer.token == token

    def discard(self, code: str, token: int):
        """Forget the entry for `code` if it still belongs to `token`."""
        if self.is_current(code, token):
            del self._timers[code]

    def is_pending(self, code: str) -> bool:
        return code in self._timers

    def expires_at(self, code: str) -> Optional[datetime]:
        timer = self._timers.get(code)
        return timer.expires_at if timer else None

    def cancel_all(self):
        for code in list(self._timers):
            self.cancel(code)

    def __len__(self) -> int:
        return len(self._timers)

    def _fire(self, code: str, token: int):
        if self.on_expire is None:
            logger.error(f"Expiry timer for room {code} fired with no handler attached")
            return
        self.on_expire(code, token)
