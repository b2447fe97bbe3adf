"""Frame encoder/decoder and block splitting for the keyboard's HID reports.

Frame layout::

    +---------+---------+--------------------+---------+-----------------+
    |  Type   | Length  |      Payload       | Parity  |     Padding     |
    | 1 byte  | 1 byte  | (length - 1) bytes | 1 byte  | to multiple of 7|
    +---------+---------+--------------------+---------+-----------------+

- Type: 0xEA for host-to-device requests, 0xED for device responses
- Length: number of payload bytes plus the parity byte
- Parity: XOR of every preceding byte (type, length, payload)
- Padding: zero bytes up to the next multiple of 7

On the wire the padded frame is split into 7-byte chunks. Each chunk is
prefixed with the block id (0x01) and written as one 8-byte output report.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import (
    InvalidDeclaredLengthError,
    InvalidFrameLengthError,
    ParityMismatchError,
)

CHUNK_SIZE = 7
BLOCK_ID = 0x01
HEADER_SIZE = 2  # type + length
MAX_PAYLOAD = 0xFF - 1  # length byte also counts the parity byte
MIN_LENGTH = 1  # parity byte only
MIN_RESPONSE_LENGTH = 2  # device responses carry at least group + status


@dataclass(frozen=True)
class Frame:
    """A decoded protocol frame."""

    type: int
    length: int
    payload: bytes
    parity: int

    def __bytes__(self) -> bytes:
        return bytes([self.type, self.length]) + self.payload + bytes([self.parity])

    def __repr__(self) -> str:
        return (
            f"Frame(type=0x{self.type:02X}, "
            f"payload={self.payload.hex(' ') if self.payload else '(empty)'})"
        )


def xor_all(data: bytes) -> int:
    """XOR every byte of ``data`` together."""
    result = 0
    for b in data:
        result ^= b
    return result


def is_zero(data: bytes) -> bool:
    """True if ``data`` holds only zero bytes (or nothing at all)."""
    return not any(data)


def encode_frame(frame_type: int, payload: bytes = b"") -> bytes:
    """Encode a logical command into a padded, parity-protected frame.

    Args:
        frame_type: Single-byte frame type (e.g. 0xEA).
        payload: Command bytes.

    Returns:
        The frame, zero-padded to a multiple of :data:`CHUNK_SIZE` bytes.
    """
    if not 0 <= frame_type <= 0xFF:
        raise ValueError(f"Frame type must be 0-255, got {frame_type}")
    if len(payload) > MAX_PAYLOAD:
        raise ValueError(
            f"Payload must be at most {MAX_PAYLOAD} bytes, got {len(payload)}"
        )

    enc_len = HEADER_SIZE + len(payload) + 1
    # The output buffer size must be divisible by the chunk size.
    buf_size = enc_len
    rem = buf_size % CHUNK_SIZE
    if rem:
        buf_size += CHUNK_SIZE - rem

    buf = bytearray(buf_size)
    buf[0] = frame_type
    buf[1] = enc_len - HEADER_SIZE
    buf[HEADER_SIZE : enc_len - 1] = payload
    buf[enc_len - 1] = xor_all(buf[: enc_len - 1])
    return bytes(buf)


def decode_frame(data: bytes) -> Frame:
    """Decode and validate one frame from the start of ``data``.

    Bytes past the end of the frame (padding, or the next frame) are
    ignored.

    Raises:
        InvalidFrameLengthError: If ``data`` is shorter than the frame.
        InvalidDeclaredLengthError: If the length byte is zero.
        ParityMismatchError: If the parity trailer is wrong.
    """
    if len(data) < HEADER_SIZE:
        raise InvalidFrameLengthError(
            f"frame needs at least {HEADER_SIZE} bytes, got {len(data)}"
        )

    frame_type, length = data[0], data[1]
    if length < MIN_LENGTH:
        raise InvalidDeclaredLengthError(
            f"declared length 0x{length:02X} is below the minimum of {MIN_LENGTH}"
        )

    end = HEADER_SIZE + length
    if len(data) < end:
        raise InvalidFrameLengthError(
            f"frame declares {length} bytes after the header, got {len(data) - HEADER_SIZE}"
        )

    payload = bytes(data[HEADER_SIZE : end - 1])
    parity = data[end - 1]
    expected = xor_all(data[: end - 1])
    if parity != expected:
        raise ParityMismatchError(parity, expected)

    return Frame(type=frame_type, length=length, payload=payload, parity=parity)


def split_blocks(frame: bytes, block_id: int = BLOCK_ID) -> list[bytes]:
    """Split an encoded frame into block-id-prefixed output reports.

    Raises:
        InvalidFrameLengthError: If ``frame`` is not a multiple of 7 bytes.
    """
    if len(frame) % CHUNK_SIZE != 0:
        raise InvalidFrameLengthError(
            f"frame length {len(frame)} is not a multiple of {CHUNK_SIZE}"
        )

    return [
        bytes([block_id]) + frame[offset : offset + CHUNK_SIZE]
        for offset in range(0, len(frame), CHUNK_SIZE)
    ]
