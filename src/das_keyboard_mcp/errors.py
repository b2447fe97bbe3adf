"""Exception hierarchy for the keyboard protocol engine.

Every error raised by this package derives from :class:`DasKeyboardError`
and, where it fits, also from the matching builtin so callers that only
know about ``ValueError`` / ``ConnectionError`` / ``TimeoutError`` keep
working.
"""

from __future__ import annotations


class DasKeyboardError(Exception):
    """Base class for all keyboard errors.

    ``stage`` is filled in by the transaction engine with the name of the
    protocol step (``begin``, ``idle``, ``active``, ``commit``) that failed.
    """

    stage: str | None = None

    def __str__(self) -> str:
        msg = super().__str__()
        if self.stage:
            return f"{self.stage}: {msg}"
        return msg


class ProtocolError(DasKeyboardError, ValueError):
    """A frame could not be encoded, split or decoded."""


class InvalidFrameLengthError(ProtocolError):
    """Frame bytes are not block aligned or shorter than declared."""


class InvalidDeclaredLengthError(ProtocolError):
    """The frame's length byte is smaller than 2."""


class ParityMismatchError(ProtocolError):
    """The XOR trailer does not match the frame contents."""

    def __init__(self, got: int, want: int) -> None:
        super().__init__(f"parity mismatch: got 0x{got:02X}, want 0x{want:02X}")
        self.got = got
        self.want = want


class TransportError(DasKeyboardError, IOError):
    """The HID transport failed to read or write a block."""


class DeviceNotFoundError(DasKeyboardError, ConnectionError):
    """No matching keyboard was found during enumeration."""


class NotOpenError(DasKeyboardError, ConnectionError):
    """The connection to the keyboard is not open."""


class RetryTimeoutError(DasKeyboardError, TimeoutError):
    """The retry budget ran out while the device had nothing to say."""


class NoResponseError(RetryTimeoutError):
    """The device did not send a single byte before the retry budget ran out."""


class CancelledError(DasKeyboardError):
    """The operation was cancelled by the caller."""
