"""Tests for inbound frame parsing and routing."""

from __future__ import annotations

import json
import logging

import pytest

from webcnc.devices.registry import DeviceRegistry
from webcnc.devices.router import InboundRouter, RegisterFrame, StatusFrame, parse_frame
from webcnc.devices.session import DeviceSession, SessionState
from webcnc.errors import MalformedFrameError, UnknownFrameTypeError


# ── Parsing ───────────────────────────────────────────────────────


class TestParseFrame:
    def test_register(self):
        assert parse_frame('{"type": "register", "uuid": "m1"}') == RegisterFrame(uuid="m1")

    def test_status(self):
        frame = parse_frame('{"type": "status", "uuid": "m1", "status": "cutting"}')
        assert frame == StatusFrame(uuid="m1", status="cutting")

    def test_bytes_frame(self):
        assert parse_frame(b'{"type": "register", "uuid": "m1"}') == RegisterFrame(uuid="m1")

    @pytest.mark.parametrize("raw", [
        "not json",
        "",
        "[1, 2, 3]",
        '"register"',
        b"\xff\xfe\x00",
        '{"type": "register"}',
        '{"type": "register", "uuid": ""}',
        '{"type": "register", "uuid": 42}',
        '{"type": "status", "uuid": "m1"}',
    ])
    def test_malformed(self, raw):
        with pytest.raises(MalformedFrameError):
            parse_frame(raw)

    def test_unknown_type(self):
        with pytest.raises(UnknownFrameTypeError) as exc_info:
            parse_frame('{"type": "telemetry", "uuid": "m1"}')
        assert exc_info.value.frame_type == "telemetry"

    def test_missing_type_is_unknown(self):
        with pytest.raises(UnknownFrameTypeError):
            parse_frame('{"uuid": "m1"}')


# ── Routing ───────────────────────────────────────────────────────


class TestInboundRouter:
    @pytest.fixture
    def registry(self):
        return DeviceRegistry()

    @pytest.fixture
    def statuses(self):
        return []

    @pytest.fixture
    def router(self, registry, statuses):
        return InboundRouter(registry, status_sink=lambda uuid, status: statuses.append((uuid, status)))

    def test_register_maps_session(self, router, registry, fake_socket):
        session = DeviceSession(fake_socket())
        frame = router.handle(session, json.dumps({"type": "register", "uuid": "m1"}))

        assert frame == RegisterFrame(uuid="m1")
        assert registry.get("m1") is session
        assert session.uuid == "m1"
        assert session.state is SessionState.REGISTERED

    def test_reregister_same_uuid_replaces(self, router, registry, fake_socket):
        a = DeviceSession(fake_socket())
        b = DeviceSession(fake_socket())
        router.handle(a, '{"type": "register", "uuid": "m1"}')
        router.handle(b, '{"type": "register", "uuid": "m1"}')

        assert registry.get("m1") is b
        assert len(registry) == 1
        # the displaced session is not closed
        assert a.alive

    def test_session_switching_uuid_releases_old_entry(self, router, registry, fake_socket):
        session = DeviceSession(fake_socket())
        router.handle(session, '{"type": "register", "uuid": "m1"}')
        router.handle(session, '{"type": "register", "uuid": "m2"}')

        assert registry.get("m1") is None
        assert registry.get("m2") is session
        assert session.uuid == "m2"

    def test_switching_uuid_does_not_evict_newer_owner(self, router, registry, fake_socket):
        a = DeviceSession(fake_socket())
        b = DeviceSession(fake_socket())
        router.handle(a, '{"type": "register", "uuid": "m1"}')
        router.handle(b, '{"type": "register", "uuid": "m1"}')
        router.handle(a, '{"type": "register", "uuid": "m2"}')

        assert registry.get("m1") is b
        assert registry.get("m2") is a

    def test_status_goes_to_sink(self, router, registry, statuses, fake_socket):
        session = DeviceSession(fake_socket())
        router.handle(session, '{"type": "register", "uuid": "m1"}')
        frame = router.handle(session, '{"type": "status", "uuid": "m1", "status": "cutting"}')

        assert frame == StatusFrame(uuid="m1", status="cutting")
        assert statuses == [("m1", "cutting")]
        assert session.last_status == "cutting"
        assert session.last_status_at is not None

    def test_status_does_not_touch_registry(self, router, registry, statuses, fake_socket):
        session = DeviceSession(fake_socket())
        router.handle(session, '{"type": "status", "uuid": "m1", "status": "idle"}')
        assert len(registry) == 0
        assert statuses == [("m1", "idle")]

    def test_malformed_frame_dropped(self, router, registry, fake_socket, caplog):
        session = DeviceSession(fake_socket())
        with caplog.at_level(logging.WARNING, logger="webcnc.devices.router"):
            assert router.handle(session, "{not json") is None
        assert "Malformed frame" in caplog.text
        assert session.alive
        assert len(registry) == 0

    def test_unknown_type_dropped_quietly(self, router, registry, fake_socket, caplog):
        session = DeviceSession(fake_socket())
        with caplog.at_level(logging.WARNING, logger="webcnc.devices.router"):
            assert router.handle(session, '{"type": "ping"}') is None
        assert caplog.text == ""

    def test_valid_frame_after_malformed(self, router, registry, fake_socket):
        session = DeviceSession(fake_socket())
        router.handle(session, b"\xff\xff")
        router.handle(session, '{"type": "register", "uuid": "m1"}')
        assert registry.get("m1") is session

    def test_default_sink_logs(self, registry, fake_socket, caplog):
        router = InboundRouter(registry)
        session = DeviceSession(fake_socket())
        with caplog.at_level(logging.INFO, logger="webcnc.devices.router"):
            router.handle(session, '{"type": "status", "uuid": "m1", "status": "homing"}')
        assert "Status from m1: homing" in caplog.text
