"""Frame types, command constants and command builders.

All lighting commands share the 0x78 command group. The second payload
byte selects the step of the stage/commit transaction.
"""

from __future__ import annotations

from enum import IntEnum

from ..models.effects import ActiveEffect, IdleEffect
from ..models.key_state import MAX_LED_ID, Color
from .framing import encode_frame

LIGHTING_GROUP = 0x78


class FrameType(IntEnum):
    """Frame type byte."""

    REQUEST = 0xEA
    RESPONSE = 0xED


class Command(IntEnum):
    """Lighting command identifiers."""

    BEGIN = 0x03
    ACTIVE = 0x04
    IDLE = 0x08
    COMMIT = 0x0A


def build_command(command: Command, payload: bytes = b"") -> bytes:
    """Build an encoded request frame for a lighting command."""
    return encode_frame(FrameType.REQUEST, bytes([LIGHTING_GROUP, command]) + payload)


def _check_key_id(key_id: int) -> None:
    if not 0 <= key_id <= MAX_LED_ID:
        raise ValueError(f"Key id must be 0-{MAX_LED_ID}, got {key_id}")


def build_begin(key_id: int) -> bytes:
    """Build the command that selects (and clears) a key for staging."""
    _check_key_id(key_id)
    return build_command(Command.BEGIN, bytes([key_id]) + bytes(7))


def build_idle(key_id: int, effect: IdleEffect, color: Color) -> bytes:
    """Build the idle-stage command for a key."""
    _check_key_id(key_id)
    return build_command(
        Command.IDLE, bytes([key_id, IdleEffect(effect)]) + color.to_bytes()
    )


def build_active(key_id: int, effect: ActiveEffect, color: Color) -> bytes:
    """Build the active-stage command for a key.

    Payload: key id, effect id, R, G, B, then the effect's three
    parameter bytes.
    """
    _check_key_id(key_id)
    return build_command(
        Command.ACTIVE,
        bytes([key_id, effect.effect_id]) + color.to_bytes() + effect.params,
    )


def build_commit() -> bytes:
    """Build the command that applies all staged key states."""
    return build_command(Command.COMMIT)
