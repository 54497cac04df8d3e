"""Shared pytest fixtures.

- FakeLoop: a manual clock implementing ``call_later`` so expiry timers can be
  advanced without sleeping
- RecordingTransport: collects every outbound event instead of writing to sockets
- harness: a fully wired registry/store/relay/orchestrator on top of both
"""

from typing import Callable, List, Optional

import pytest

from backend import RoomStore
from expiry import ExpiryScheduler
from orchestrator import SessionOrchestrator
from registry import ConnectionRegistry
from relay import SignalingRelay


class FakeTimerHandle:
    def __init__(self, when: float, callback: Callable, args: tuple):
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True


class FakeLoop:
    def __init__(self):
        self.now = 0.0
        self.handles: List[FakeTimerHandle] = []

    def call_later(self, delay, callback, *args):
        handle = FakeTimerHandle(self.now + delay, callback, args)
        self.handles.append(handle)
        return handle

    def advance(self, seconds: float):
        self.now += seconds
        due = [h for h in self.handles if not h.cancelled and not h.fired and h.when <= self.now]
        for handle in sorted(due, key=lambda h: h.when):
            handle.fired = True
            handle.callback(*handle.args)

    @property
    def live_handles(self) -> List[FakeTimerHandle]:
        return [h for h in self.handles if not h.cancelled and not h.fired]


class RecordingTransport:
    def __init__(self):
        self.sent = []

    async def send(self, connection_id, event, data=None):
        self.sent.append((connection_id, event, data))
        return True

    def events(self, connection_id: str, event: Optional[str] = None) -> list:
        return [
            data for cid, name, data in self.sent
            if cid == connection_id and (event is None or name == event)
        ]

    def names(self, connection_id: str) -> List[str]:
        return [name for cid, name, _ in self.sent if cid == connection_id]

    def clear(self):
        self.sent.clear()


class Harness:
    def __init__(self, codes: Optional[List[str]] = None, require_shared_room: bool = False, grace_seconds: float = 120):
        self.loop = FakeLoop()
        self.expiries = []
        self.scheduler = ExpiryScheduler(grace_seconds=grace_seconds, loop=self.loop)
        self.scheduler.on_expire = lambda code, token: self.expiries.append((code, token))
        self.store = RoomStore(self.scheduler)
        self.registry = ConnectionRegistry()
        self.transport = RecordingTransport()
        self.relay = SignalingRelay(self.registry, self.transport, require_shared_room=require_shared_room)

        kwargs = {}
        if codes is not None:
            pending = list(codes)
            kwargs["code_generator"] = lambda: pending.pop(0)
        self.orchestrator = SessionOrchestrator(
            self.registry,
            self.store,
            self.relay,
            self.transport,
            client_url="https://call.example.com",
            **kwargs,
        )

    async def connect(self, *connection_ids: str):
        for connection_id in connection_ids:
            await self.orchestrator.connect(connection_id)

    async def run_expiries(self):
        """Feed fired timers back through the orchestrator, as the dispatcher would."""
        pending, self.expiries = self.expiries, []
        for code, token in pending:
            await self.orchestrator.expire_room(code, token)

    async def advance(self, seconds: float):
        self.loop.advance(seconds)
        await self.run_expiries()


@pytest.fixture
def fake_loop() -> FakeLoop:
    return FakeLoop()


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def harness_factory():
    return Harness


@pytest.fixture
def harness() -> Harness:
    return Harness()
