"""Response parsing for device messages."""

from __future__ import annotations

from dataclasses import dataclass

from .commands import LIGHTING_GROUP, FrameType
from .framing import Frame


@dataclass
class Ack:
    """Parsed acknowledgement (``ED 03 78 <status> <parity>``)."""

    group: int
    status: int

    @property
    def ok(self) -> bool:
        return self.status == 0x00


def parse_ack(frame: Frame) -> Ack | None:
    """Parse an acknowledgement frame.

    Returns ``None`` for anything that is not a lighting-group response.
    """
    if frame.type != FrameType.RESPONSE:
        return None
    if len(frame.payload) < 2 or frame.payload[0] != LIGHTING_GROUP:
        return None
    return Ack(group=frame.payload[0], status=frame.payload[1])
