"""Tests for the keyboard session and the stage/commit transaction."""

import threading

import pytest

from das_keyboard_mcp.errors import (
    CancelledError,
    DeviceNotFoundError,
    InvalidFrameLengthError,
    NoResponseError,
    NotOpenError,
    ParityMismatchError,
    TransportError,
)
from das_keyboard_mcp.keyboard import Keyboard
from das_keyboard_mcp.models.effects import (
    NONE,
    IdleEffect,
    blink_active,
    set_color_active,
)
from das_keyboard_mcp.models.key_state import MAX_LED_ID, Color, KeyState
from das_keyboard_mcp.transport.usb_connection import DeviceInfo, HIDConnection

ACK = bytes([0xED, 0x03, 0x78, 0x00, 0x96, 0, 0, 0])
ZERO = bytes(8)

BEGIN_5 = [
    bytes([1, 0xEA, 0x0B, 0x78, 0x03, 0x05, 0x00, 0x00]),
    bytes([1, 0x00, 0x00, 0x00, 0x00, 0x00, 0x9F, 0x00]),
]
IDLE_5 = [
    bytes([1, 0xEA, 0x08, 0x78, 0x08, 0x05, 0x01, 0xFB]),
    bytes([1, 0x02, 0x03, 0x6C, 0x00, 0x00, 0x00, 0x00]),
]
COMMIT = [bytes([1, 0xEA, 0x03, 0x78, 0x0A, 0x9B, 0x00, 0x00])]


def _state(active_effect=NONE, active_color=Color()):
    return KeyState(
        key_id=0x05,
        idle_effect=IdleEffect.SET_COLOR,
        idle_color=Color(0xFB, 0x02, 0x03),
        active_effect=active_effect,
        active_color=active_color,
    )


@pytest.mark.parametrize(
    "active_effect, active_color, active_blocks",
    [
        (
            NONE,
            Color(),
            [
                bytes([1, 0xEA, 0x0B, 0x78, 0x04, 0x05, 0x00, 0x00]),
                bytes([1, 0x00, 0x00, 0x00, 0x00, 0x00, 0x98, 0x00]),
            ],
        ),
        (
            set_color_active(duration=4.0),
            Color(0xFC, 0xFD, 0xFE),
            [
                bytes([1, 0xEA, 0x0B, 0x78, 0x04, 0x05, 0x1E, 0xFC]),
                bytes([1, 0xFD, 0xFE, 0x0F, 0xD0, 0x00, 0xA6, 0x00]),
            ],
        ),
        (
            blink_active(cycle_count=2, cycle_duration=2.0),
            Color(0xFC, 0xFD, 0xFE),
            [
                bytes([1, 0xEA, 0x0B, 0x78, 0x04, 0x05, 0x1F, 0xFC]),
                bytes([1, 0xFD, 0xFE, 0x03, 0xB8, 0x02, 0xC1, 0x00]),
            ],
        ),
    ],
    ids=["set_color and none", "set_color and set_color", "set_color and blink"],
)
def test_set_state_single_key(make_keyboard, active_effect, active_color, active_blocks):
    """One key: begin, idle, active, then exactly one commit."""
    kb, hid = make_keyboard([ACK, ACK, ACK])
    kb.set_state(_state(active_effect, active_color))

    assert hid.sent == BEGIN_5 + IDLE_5 + active_blocks + COMMIT
    assert hid.reads == []
    assert hid.receive_calls == 3


def test_set_state_multiple_keys_commits_once(make_keyboard):
    kb, hid = make_keyboard([ACK] * 5)
    kb.set_state(
        KeyState(0x11, idle_color=Color(r=0xFF)),
        KeyState(0x17, idle_color=Color(b=0xFF)),
    )

    commits = [b for b in hid.sent if b == COMMIT[0]]
    assert len(commits) == 1
    assert hid.sent[-1] == COMMIT[0]
    # 2 keys x (2 + 2 + 2 blocks) + 1 commit block
    assert len(hid.sent) == 13
    # keys are staged in caller order
    assert hid.sent[0][5] == 0x11
    assert hid.sent[6][5] == 0x17


def test_missing_begin_ack_is_tolerated(make_keyboard):
    kb, hid = make_keyboard([ZERO, ZERO, ZERO, ACK, ACK])
    kb.set_state(_state())
    assert hid.sent[-1] == COMMIT[0]
    assert hid.reads == []


def test_missing_active_ack_is_tolerated(make_keyboard):
    kb, hid = make_keyboard([ACK, ZERO, ZERO, ZERO, ACK])
    kb.set_state(_state())
    assert hid.sent[:4] == BEGIN_5 + IDLE_5
    assert hid.sent[4][4] == 0x04  # active command
    assert hid.sent[6:] == COMMIT
    assert hid.reads == []


def test_missing_commit_ack_is_fatal(make_keyboard):
    kb, hid = make_keyboard([ACK, ACK, ZERO, ZERO, ZERO])
    with pytest.raises(NoResponseError) as exc:
        kb.set_state(_state())
    assert exc.value.stage == "commit"


def test_stage_failure_skips_commit(make_keyboard):
    bad_ack = bytes([0xED, 0x03, 0x78, 0x00, 0xEE, 0, 0, 0])
    kb, hid = make_keyboard([bad_ack])
    with pytest.raises(ParityMismatchError) as exc:
        kb.set_state(_state())
    assert exc.value.stage == "begin"
    assert hid.sent == BEGIN_5
    assert COMMIT[0] not in hid.sent


def test_transport_error_on_read_aborts(make_keyboard):
    kb, hid = make_keyboard([OSError("broken pipe")])
    with pytest.raises(TransportError):
        kb.set_state(_state())
    assert hid.receive_calls == 1
    assert COMMIT[0] not in hid.sent


def test_cancel_before_write(make_keyboard):
    kb, hid = make_keyboard([ACK, ACK, ACK])
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(CancelledError):
        kb.set_state(_state(), cancel=cancel)
    assert hid.sent == []


def test_cancel_during_begin_read(make_keyboard):
    """Blocks already written stay written; nothing after them is sent."""
    kb, hid = make_keyboard()
    cancel = threading.Event()

    def receive(block_id):
        hid.receive_calls += 1
        cancel.set()
        return ZERO

    hid.receive = receive
    with pytest.raises(CancelledError) as exc:
        kb.set_state(_state(), cancel=cancel)
    assert exc.value.stage == "begin"
    assert hid.sent == BEGIN_5
    assert COMMIT[0] not in hid.sent


def test_send_frame_rejects_unaligned(make_keyboard):
    kb, hid = make_keyboard()
    with pytest.raises(InvalidFrameLengthError):
        kb.send_frame(bytes(8))
    assert hid.sent == []


def test_get_frames(make_keyboard):
    kb, _ = make_keyboard([ACK])
    frames = kb.get_frames()
    assert [bytes(f) for f in frames] == [ACK[:5]]


def test_set_all_stages_every_led(make_keyboard):
    kb, hid = make_keyboard([ACK] * (2 * (MAX_LED_ID + 1) + 1))
    kb.set_all(idle_color=Color(0x01, 0x02, 0xF3))
    assert len(hid.sent) == 6 * (MAX_LED_ID + 1) + 1
    assert hid.sent[-1] == COMMIT[0]


def test_close_then_operations_fail(make_keyboard):
    kb, hid = make_keyboard()
    kb.close()
    assert hid.closed
    assert not kb.is_open
    with pytest.raises(NotOpenError):
        kb.set_state(_state())
    with pytest.raises(NotOpenError):
        kb.get_frames()
    with pytest.raises(NotOpenError):
        kb.close()


def test_context_manager_closes(make_keyboard):
    kb, hid = make_keyboard()
    with kb:
        pass
    assert hid.closed


def test_open_without_device(monkeypatch):
    monkeypatch.setattr(
        "das_keyboard_mcp.keyboard.enumerate_devices", lambda *a, **kw: iter(())
    )
    with pytest.raises(DeviceNotFoundError):
        Keyboard.open()


def test_open_wraps_last_error(monkeypatch):
    info = DeviceInfo(product_id=0x2037, interface_number=1, path=b"1-1:1.1")
    monkeypatch.setattr(
        "das_keyboard_mcp.keyboard.enumerate_devices", lambda *a, **kw: iter([info])
    )

    def fail_open(self, device=None):
        raise DeviceNotFoundError("gone")

    monkeypatch.setattr(HIDConnection, "open", fail_open)
    with pytest.raises(TransportError) as exc:
        Keyboard.open()
    assert isinstance(exc.value.__cause__, DeviceNotFoundError)
