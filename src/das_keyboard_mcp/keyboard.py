"""Keyboard session: device discovery and the stage/commit transaction.

Usage::

    with Keyboard.open() as kb:
        kb.set_state(
            KeyState(0x05, IdleEffect.SET_COLOR, Color(0xFB, 0x02, 0x03)),
            KeyState(0x06, active_effect=blink_active(cycle_count=2),
                     active_color=Color(0xFC, 0xFD, 0xFE)),
        )

Each key is staged with three messages (begin, idle, active). A single
commit message then applies all staged keys at once.
"""

from __future__ import annotations

import logging
import threading

from .errors import (
    DasKeyboardError,
    DeviceNotFoundError,
    NoResponseError,
    NotOpenError,
    TransportError,
)
from .models.effects import NONE, ActiveEffect, IdleEffect
from .models.key_state import BLACK, MAX_LED_ID, Color, KeyState
from .protocol.commands import build_active, build_begin, build_commit, build_idle
from .protocol.framing import BLOCK_ID, Frame, split_blocks
from .protocol.parser import parse_ack
from .protocol.reader import BlockReader, read_frames
from .transport.usb_connection import (
    KEYBOARD_INTERFACE,
    VENDOR_ID,
    HIDConnection,
    enumerate_devices,
)
from .utils.retry import RetryPolicy, check_cancelled

logger = logging.getLogger(__name__)


class Keyboard:
    """Connection to one keyboard.

    Args:
        transport: Object with ``send(block_id, data)``,
            ``receive(block_id) -> bytes`` and ``close()``.
        retry_policy: Policy for reads while the device has no data yet.

    The handle owns the transport. Calls on one handle are serialized; once
    :meth:`close` has been called every operation raises
    :class:`NotOpenError`.
    """

    def __init__(self, transport, retry_policy: RetryPolicy | None = None) -> None:
        self._transport = transport
        self._policy = retry_policy or RetryPolicy()
        self._lock = threading.RLock()

    @classmethod
    def open(
        cls,
        vendor_id: int = VENDOR_ID,
        interface: int = KEYBOARD_INTERFACE,
        retry_policy: RetryPolicy | None = None,
    ) -> Keyboard:
        """Open the first matching keyboard that can be opened.

        Raises:
            DeviceNotFoundError: If no device matched.
            TransportError: The last open error, if devices matched but none
                could be opened.
        """
        last_error: DasKeyboardError | None = None
        for info in enumerate_devices(vendor_id, interface):
            conn = HIDConnection(vendor_id, interface)
            try:
                conn.open(info)
            except DasKeyboardError as e:
                logger.debug("Could not open %r: %s", info.path, e)
                last_error = e
                continue
            return cls(conn, retry_policy)

        if last_error is not None:
            if isinstance(last_error, TransportError):
                raise last_error
            raise TransportError(f"Could not open keyboard: {last_error}") from last_error
        raise DeviceNotFoundError(
            f"No keyboard with vendor id {vendor_id:#06x} on interface {interface}"
        )

    @property
    def is_open(self) -> bool:
        return self._transport is not None

    @property
    def transport(self):
        return self._transport

    def _require_open(self):
        if self._transport is None:
            raise NotOpenError("connection to keyboard not open")
        return self._transport

    def close(self) -> None:
        """Close the connection. Closing twice raises :class:`NotOpenError`."""
        with self._lock:
            transport = self._require_open()
            self._transport = None
        transport.close()

    def __enter__(self) -> Keyboard:
        return self

    def __exit__(self, *exc) -> None:
        if self.is_open:
            self.close()

    # ─── FRAME EXCHANGE ───────────────────────────────────────────────

    def send_frame(self, frame: bytes, cancel: threading.Event | None = None) -> None:
        """Write an encoded frame, one 7-byte chunk per output report.

        The cancel event is checked before every chunk; chunks already
        written are not rolled back.
        """
        with self._lock:
            transport = self._require_open()
            for block in split_blocks(frame, BLOCK_ID):
                check_cancelled(cancel)
                logger.debug("-> %s", block.hex(" "))
                try:
                    transport.send(BLOCK_ID, block)
                except DasKeyboardError:
                    raise
                except Exception as e:
                    raise TransportError(f"send({BLOCK_ID}) failed: {e}") from e

    def get_frames(self, cancel: threading.Event | None = None) -> list[Frame]:
        """Read all frames the device has queued."""
        with self._lock:
            transport = self._require_open()
            reader = BlockReader(transport.receive, self._policy, cancel, BLOCK_ID)
            return read_frames(reader.read_one)

    # ─── STAGE / COMMIT TRANSACTION ───────────────────────────────────

    def set_state(self, *states: KeyState, cancel: threading.Event | None = None) -> None:
        """Set the state of one or more keys in one transaction.

        Passing many states in one call is cheaper than calling this
        repeatedly, and they all change at the same moment. If any stage
        fails the commit is not sent; the error is raised with its
        ``stage`` attribute set.
        """
        with self._lock:
            self._require_open()
            for state in states:
                self._stage(state, cancel)
            self._commit(cancel)
            logger.debug("Committed %d key state(s)", len(states))

    def set_all(
        self,
        idle_color: Color = BLACK,
        idle_effect: IdleEffect = IdleEffect.SET_COLOR,
        active_effect: ActiveEffect = NONE,
        active_color: Color = BLACK,
        cancel: threading.Event | None = None,
    ) -> None:
        """Give every addressable LED the same appearance."""
        states = [
            KeyState(key_id, idle_effect, idle_color, active_effect, active_color)
            for key_id in range(MAX_LED_ID + 1)
        ]
        self.set_state(*states, cancel=cancel)

    def _stage(self, state: KeyState, cancel: threading.Event | None) -> None:
        self._send("begin", build_begin(state.key_id), cancel)
        self._read_ack("begin", cancel, required=False)

        self._send(
            "idle",
            build_idle(state.key_id, state.idle_effect, state.idle_color),
            cancel,
        )
        self._send(
            "active",
            build_active(state.key_id, state.active_effect, state.active_color),
            cancel,
        )
        self._read_ack("active", cancel, required=False)

    def _commit(self, cancel: threading.Event | None) -> None:
        self._send("commit", build_commit(), cancel)
        self._read_ack("commit", cancel, required=True)

    def _send(self, stage: str, frame: bytes, cancel: threading.Event | None) -> None:
        try:
            self.send_frame(frame, cancel)
        except DasKeyboardError as e:
            e.stage = stage
            raise

    def _read_ack(
        self, stage: str, cancel: threading.Event | None, required: bool
    ) -> list[Frame]:
        try:
            frames = self.get_frames(cancel)
        except NoResponseError as e:
            if required:
                e.stage = stage
                raise
            # The device does not always echo staging messages.
            logger.debug("No acknowledgement after %s stage", stage)
            return []
        except DasKeyboardError as e:
            e.stage = stage
            raise

        for frame in frames:
            ack = parse_ack(frame)
            if ack is None or not ack.ok:
                logger.warning("Unexpected response after %s stage: %r", stage, frame)
            else:
                logger.debug("Acknowledged %s stage", stage)
        return frames
