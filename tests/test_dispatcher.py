"""Event dispatcher: routing, tolerance of malformed payloads, serialization"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from dispatcher import ClientMessage, Connected, Disconnected, EventDispatcher, RoomExpiry


@pytest.fixture
def mock_orchestrator():
    orchestrator = MagicMock()
    for name in (
        "connect", "disconnect", "register", "create_room", "join_room", "call_user",
        "answer_call", "reject_call", "end_call", "signal", "screen_share", "expire_room",
    ):
        setattr(orchestrator, name, AsyncMock())
    return orchestrator


@pytest.fixture
def dispatcher(mock_orchestrator):
    return EventDispatcher(mock_orchestrator)


async def test_lifecycle_messages(dispatcher, mock_orchestrator):
    await dispatcher.handle(Connected("c1"))
    await dispatcher.handle(Disconnected("c1"))
    await dispatcher.handle(RoomExpiry("AB12CD", 3))

    mock_orchestrator.connect.assert_awaited_once_with("c1")
    mock_orchestrator.disconnect.assert_awaited_once_with("c1")
    mock_orchestrator.expire_room.assert_awaited_once_with("AB12CD", 3)


async def test_join_room_routing(dispatcher, mock_orchestrator):
    await dispatcher.handle(ClientMessage("c1", "joinRoom", {"roomCode": "ab12cd", "name": "Bob"}))

    mock_orchestrator.join_room.assert_awaited_once_with("c1", "ab12cd", "Bob")


async def test_call_user_routing_keeps_signal_opaque(dispatcher, mock_orchestrator):
    signal = {"type": "offer", "sdp": "v=0", "extra": [1, 2, 3]}

    await dispatcher.handle(ClientMessage("c1", "callUser", {
        "userToCall": "c2", "signalData": signal, "from": "c1", "name": "Alice",
    }))

    mock_orchestrator.call_user.assert_awaited_once_with("c1", "c2", signal, "Alice")


async def test_screen_share_routing(dispatcher, mock_orchestrator):
    await dispatcher.handle(ClientMessage("c1", "screenShareStopped", {"from": "c1", "name": "A", "roomId": "AB12CD"}))

    mock_orchestrator.screen_share.assert_awaited_once_with("c1", "screenShareStopped", "A", "AB12CD")


async def test_missing_fields_become_empty(dispatcher, mock_orchestrator):
    await dispatcher.handle(ClientMessage("c1", "joinRoom", {}))
    await dispatcher.handle(ClientMessage("c1", "signal", {}))
    await dispatcher.handle(ClientMessage("c1", "createRoom", {"name": None}))

    mock_orchestrator.join_room.assert_awaited_once_with("c1", "", "")
    mock_orchestrator.signal.assert_awaited_once_with("c1", None, None)
    mock_orchestrator.create_room.assert_awaited_once_with("c1", "")


async def test_unknown_event_is_dropped(dispatcher, mock_orchestrator):
    await dispatcher.handle(ClientMessage("c1", "selfDestruct", {}))

    for name in ("register", "create_room", "join_room", "signal"):
        getattr(mock_orchestrator, name).assert_not_awaited()


async def test_scalar_fields_are_coerced_to_text(dispatcher, mock_orchestrator):
    await dispatcher.handle(ClientMessage("c1", "joinRoom", {"roomCode": 123, "name": 7}))
    await dispatcher.handle(ClientMessage("c1", "register", {"name": 42}))
    await dispatcher.handle(ClientMessage("c1", "rejectCall", {"to": 9.5}))

    mock_orchestrator.join_room.assert_awaited_once_with("c1", "123", "7")
    mock_orchestrator.register.assert_awaited_once_with("c1", "42")
    mock_orchestrator.reject_call.assert_awaited_once_with("c1", "9.5")


async def test_non_scalar_fields_and_payloads_become_empty(dispatcher, mock_orchestrator):
    await dispatcher.handle(ClientMessage("c1", "createRoom", {"name": {"first": "A"}}))
    await dispatcher.handle(ClientMessage("c1", "register", ["not", "an", "object"]))

    mock_orchestrator.create_room.assert_awaited_once_with("c1", "")
    mock_orchestrator.register.assert_awaited_once_with("c1", "")


async def test_join_room_accepts_room_id(dispatcher, mock_orchestrator):
    await dispatcher.handle(ClientMessage("c1", "joinRoom", {"roomId": "AB12CD", "name": "Bob"}))

    mock_orchestrator.join_room.assert_awaited_once_with("c1", "AB12CD", "Bob")


async def test_full_queue_makes_submit_wait(mock_orchestrator):
    dispatcher = EventDispatcher(mock_orchestrator, queue_size=1)
    await dispatcher.submit("c1", "register", {"name": "A"})

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(dispatcher.submit("c1", "register", {"name": "B"}), timeout=0.05)

    dispatcher.start()
    try:
        await asyncio.wait_for(dispatcher.submit("c1", "register", {"name": "C"}), timeout=1)
        await asyncio.wait_for(dispatcher.drain(), timeout=1)
    finally:
        await dispatcher.stop()

    assert [c.args for c in mock_orchestrator.register.await_args_list] == [("c1", "A"), ("c1", "C")]


async def test_expiry_on_full_queue_is_not_lost(mock_orchestrator):
    expired = asyncio.Event()

    async def on_expire(code, token):
        expired.set()

    mock_orchestrator.expire_room.side_effect = on_expire
    dispatcher = EventDispatcher(mock_orchestrator, queue_size=1)
    await dispatcher.submit("c1", "register", {"name": "A"})

    dispatcher.expire_room("AB12CD", 2)

    dispatcher.start()
    try:
        await asyncio.wait_for(expired.wait(), timeout=1)
    finally:
        await dispatcher.stop()

    mock_orchestrator.expire_room.assert_awaited_once_with("AB12CD", 2)


async def test_client_cannot_spoof_lifecycle_events(dispatcher, mock_orchestrator):
    await dispatcher.handle(ClientMessage("c1", "disconnect", {}))
    await dispatcher.handle(ClientMessage("c1", "connect", {}))

    mock_orchestrator.disconnect.assert_not_awaited()
    mock_orchestrator.connect.assert_not_awaited()


async def test_worker_processes_in_order_and_survives_errors(dispatcher, mock_orchestrator):
    calls = []

    async def on_connect(cid):
        calls.append(f"connect:{cid}")

    async def on_disconnect(cid):
        calls.append(f"disconnect:{cid}")

    mock_orchestrator.connect.side_effect = on_connect
    mock_orchestrator.register.side_effect = RuntimeError("boom")
    mock_orchestrator.disconnect.side_effect = on_disconnect

    dispatcher.start()
    try:
        await dispatcher.connect("c1")
        await dispatcher.submit("c1", "register", {"name": "A"})
        dispatcher.expire_room("AB12CD", 1)
        await dispatcher.disconnect("c1")
        await asyncio.wait_for(dispatcher.drain(), timeout=1)
    finally:
        await dispatcher.stop()

    assert calls == ["connect:c1", "disconnect:c1"]
    mock_orchestrator.expire_room.assert_awaited_once_with("AB12CD", 1)
