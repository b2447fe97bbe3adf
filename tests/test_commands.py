"""Tests for command builders and acknowledgement parsing."""

import pytest

from das_keyboard_mcp.models.effects import IdleEffect, blink_active, NONE
from das_keyboard_mcp.models.key_state import Color
from das_keyboard_mcp.protocol.commands import (
    Command,
    FrameType,
    LIGHTING_GROUP,
    build_active,
    build_begin,
    build_commit,
    build_idle,
)
from das_keyboard_mcp.protocol.framing import Frame, decode_frame
from das_keyboard_mcp.protocol.parser import parse_ack


def test_command_enum_values():
    assert FrameType.REQUEST == 0xEA
    assert FrameType.RESPONSE == 0xED
    assert Command.BEGIN == 0x03
    assert Command.ACTIVE == 0x04
    assert Command.IDLE == 0x08
    assert Command.COMMIT == 0x0A


def test_build_begin():
    frame = decode_frame(build_begin(0x05))
    assert frame.type == FrameType.REQUEST
    assert frame.payload == bytes([LIGHTING_GROUP, Command.BEGIN, 0x05]) + bytes(7)


def test_build_idle():
    frame = decode_frame(build_idle(0x05, IdleEffect.SET_COLOR, Color(0x60, 0x61, 0x62)))
    assert frame.payload == bytes([0x78, 0x08, 0x05, 0x01, 0x60, 0x61, 0x62])


def test_build_active():
    effect = blink_active(cycle_count=2)
    frame = decode_frame(build_active(0x05, effect, Color(0xFC, 0xFD, 0xFE)))
    assert frame.payload == bytes(
        [0x78, 0x04, 0x05, 0x1F, 0xFC, 0xFD, 0xFE, 0x01, 0xF4, 0x02]
    )


def test_build_active_none():
    frame = decode_frame(build_active(0x05, NONE, Color()))
    assert frame.payload == bytes([0x78, 0x04, 0x05]) + bytes(7)


def test_build_commit():
    assert build_commit() == bytes([0xEA, 0x03, 0x78, 0x0A, 0x9B, 0x00, 0x00])


def test_key_id_bounds():
    with pytest.raises(ValueError):
        build_begin(125)
    with pytest.raises(ValueError):
        build_idle(-1, IdleEffect.SET_COLOR, Color())
    build_begin(124)


def test_parse_ack():
    ack = parse_ack(decode_frame(bytes([0xED, 0x03, 0x78, 0x00, 0x96])))
    assert ack is not None
    assert ack.group == 0x78
    assert ack.ok


def test_parse_ack_rejects_request_frames():
    assert parse_ack(decode_frame(build_commit())) is None


def test_parse_ack_short_payload():
    assert parse_ack(Frame(type=0xED, length=2, payload=b"\x78", parity=0x95)) is None
