"""Tests for the device registry and transport session."""

from __future__ import annotations

import threading

import pytest

from webcnc.devices.registry import DeviceRegistry
from webcnc.devices.session import DeviceSession, SessionState
from webcnc.errors import DeliveryError


class TestDeviceRegistry:
    def test_empty(self):
        registry = DeviceRegistry()
        assert len(registry) == 0
        assert registry.get("m1") is None
        assert registry.entries() == []

    def test_set_and_get(self, fake_socket):
        registry = DeviceRegistry()
        session = DeviceSession(fake_socket())
        assert registry.set("m1", session) is None
        assert registry.get("m1") is session
        assert "m1" in registry
        assert len(registry) == 1

    def test_second_register_replaces_first(self, fake_socket):
        registry = DeviceRegistry()
        a = DeviceSession(fake_socket())
        b = DeviceSession(fake_socket())
        registry.set("m1", a)
        displaced = registry.set("m1", b)

        assert displaced is a
        assert registry.get("m1") is b
        assert registry.entries() == [("m1", b)]

    def test_set_same_session_twice_displaces_nothing(self, fake_socket):
        registry = DeviceRegistry()
        session = DeviceSession(fake_socket())
        registry.set("m1", session)
        assert registry.set("m1", session) is None

    def test_remove_if_current(self, fake_socket):
        registry = DeviceRegistry()
        session = DeviceSession(fake_socket())
        registry.set("m1", session)

        assert registry.remove_if_current("m1", session) is True
        assert registry.get("m1") is None

    def test_remove_stale_session_keeps_newer(self, fake_socket):
        registry = DeviceRegistry()
        a = DeviceSession(fake_socket())
        b = DeviceSession(fake_socket())
        registry.set("m1", a)
        registry.set("m1", b)

        assert registry.remove_if_current("m1", a) is False
        assert registry.get("m1") is b

    def test_remove_unknown_uuid(self, fake_socket):
        registry = DeviceRegistry()
        assert registry.remove_if_current("ghost", DeviceSession(fake_socket())) is False

    def test_entries_is_snapshot(self, fake_socket):
        registry = DeviceRegistry()
        registry.set("m1", DeviceSession(fake_socket()))
        snapshot = registry.entries()
        registry.set("m2", DeviceSession(fake_socket()))
        assert len(snapshot) == 1
        assert len(registry.entries()) == 2

    def test_threaded_writers_leave_one_entry_per_uuid(self, fake_socket):
        registry = DeviceRegistry()
        sessions = [DeviceSession(fake_socket()) for _ in range(16)]

        def worker(session):
            for i in range(200):
                registry.set(f"m{i % 4}", session)
                registry.get(f"m{i % 4}")

        threads = [threading.Thread(target=worker, args=(s,)) for s in sessions]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        entries = registry.entries()
        assert sorted(uuid for uuid, _ in entries) == ["m0", "m1", "m2", "m3"]
        assert all(session in sessions for _, session in entries)


class TestDeviceSession:
    def test_initial_state(self, fake_socket):
        session = DeviceSession(fake_socket())
        assert session.state is SessionState.CONNECTED
        assert session.uuid is None
        assert session.alive
        assert session.session_id.startswith("sess-")

    def test_state_transitions(self, fake_socket):
        session = DeviceSession(fake_socket())
        session.mark_registered("m1")
        assert session.state is SessionState.REGISTERED
        assert session.uuid == "m1"

        assert session.mark_closed() is SessionState.REGISTERED
        assert session.state is SessionState.CLOSED
        assert not session.alive

    def test_register_after_close_stays_closed(self, fake_socket):
        session = DeviceSession(fake_socket())
        session.mark_closed()
        session.mark_registered("m1")
        assert session.state is SessionState.CLOSED

    @pytest.mark.asyncio
    async def test_send_serialises_json(self, fake_socket):
        ws = fake_socket()
        session = DeviceSession(ws)
        await session.send({"type": "command", "command": "G28"})
        assert ws.sent == [{"type": "command", "command": "G28"}]

    @pytest.mark.asyncio
    async def test_send_failure_raises_delivery_error(self, fake_socket):
        session = DeviceSession(fake_socket(fail_sends=True))
        session.mark_registered("m1")
        with pytest.raises(DeliveryError) as exc_info:
            await session.send({"type": "command", "command": "G28"})
        assert exc_info.value.uuid == "m1"
        assert "connection reset" in exc_info.value.reason

    @pytest.mark.asyncio
    async def test_send_on_closed_session(self, fake_socket):
        ws = fake_socket()
        session = DeviceSession(ws)
        session.mark_closed()
        with pytest.raises(DeliveryError):
            await session.send({"type": "command", "command": "G28"})
        assert ws.sent == []

    @pytest.mark.asyncio
    async def test_frames_end_on_disconnect(self, fake_socket):
        ws = fake_socket()
        ws.feed('{"type": "register", "uuid": "m1"}')
        ws.feed(b"raw-bytes")
        ws.disconnect()
        ws.feed("never read")

        frames = [f async for f in DeviceSession(ws).frames()]
        assert frames == ['{"type": "register", "uuid": "m1"}', b"raw-bytes"]
