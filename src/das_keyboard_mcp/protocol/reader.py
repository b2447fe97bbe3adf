"""Block reads with retry, and reassembly of frames from those blocks.

The keyboard answers with 8-byte input reports. A report of all zero bytes
means the device has not produced a response yet; it is retried. A frame
may span several reports and several frames may share one report, so
:func:`read_frames` keeps reading until the bytes left over after the last
complete frame are all zero.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

from ..errors import (
    DasKeyboardError,
    InvalidDeclaredLengthError,
    NoResponseError,
    RetryTimeoutError,
    TransportError,
)
from ..utils.retry import Abort, Ok, Outcome, Retry, RetryPolicy, run
from .framing import (
    BLOCK_ID,
    HEADER_SIZE,
    MIN_RESPONSE_LENGTH,
    Frame,
    decode_frame,
    is_zero,
)

logger = logging.getLogger(__name__)


class BlockReader:
    """Reads one non-empty block from the device per :meth:`read_one` call.

    Args:
        receive: Block-level read primitive, called with the block id.
        policy: Retry policy used while the device has nothing to say.
        cancel: Optional event that aborts the read when set.
        block_id: Report id passed to ``receive``.
    """

    def __init__(
        self,
        receive: Callable[[int], bytes],
        policy: RetryPolicy | None = None,
        cancel: threading.Event | None = None,
        block_id: int = BLOCK_ID,
    ) -> None:
        self._receive = receive
        self._policy = policy or RetryPolicy()
        self._cancel = cancel
        self._block_id = block_id

    def _attempt(self) -> Outcome:
        try:
            data = self._receive(self._block_id)
        except DasKeyboardError as e:
            return Abort(e)
        except Exception as e:
            err = TransportError(f"receive({self._block_id}) failed: {e}")
            err.__cause__ = e
            return Abort(err)

        data = bytes(data or b"")
        if is_zero(data):
            return Retry("no data yet")

        logger.debug("<- %s", data.hex(" "))
        return Ok(data)

    def read_one(self) -> bytes:
        """Return the next non-zero block.

        Raises:
            TransportError: If the transport fails (never retried).
            RetryTimeoutError: If only empty blocks arrived within the budget.
            CancelledError: If the cancel event was set.
        """
        return run(self._attempt, self._policy, self._cancel)


def read_frames(read_one: Callable[[], bytes]) -> list[Frame]:
    """Read and reassemble frames until the device has nothing more to send.

    Args:
        read_one: Returns the next non-empty block (see :class:`BlockReader`).

    Returns:
        The frames in the order they arrived.

    Raises:
        NoResponseError: If no byte at all arrived within the retry budget.
        InvalidDeclaredLengthError: If a length byte is below 2.
        ParityMismatchError: If a frame's parity trailer is wrong.
    """
    buf = bytearray()
    frames: list[Frame] = []

    def fill(size: int) -> None:
        while len(buf) < size:
            try:
                buf.extend(read_one())
            except NoResponseError:
                raise
            except RetryTimeoutError as e:
                if not buf and not frames:
                    raise NoResponseError(str(e)) from e
                raise

    while True:
        fill(HEADER_SIZE)
        length = buf[1]
        if length < MIN_RESPONSE_LENGTH:
            raise InvalidDeclaredLengthError(
                f"declared length 0x{length:02X} is below the minimum of {MIN_RESPONSE_LENGTH}"
            )

        size = HEADER_SIZE + length
        fill(size)
        frames.append(decode_frame(bytes(buf[:size])))
        del buf[:size]

        if is_zero(buf):
            return frames
