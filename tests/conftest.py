"""Shared fixtures: a fake HID transport that records writes and replays reads."""

from __future__ import annotations

import pytest

from das_keyboard_mcp.keyboard import Keyboard
from das_keyboard_mcp.utils.retry import RetryPolicy


class FakeHID:
    """Stand-in for HIDConnection.

    ``reads`` is consumed in order by ``receive``; an exception instance in
    the list is raised instead of returned.
    """

    def __init__(self, reads=None):
        self.reads = list(reads or [])
        self.sent: list[bytes] = []
        self.receive_calls = 0
        self.closed = False

    def send(self, block_id: int, data: bytes) -> None:
        if self.closed:
            raise OSError("device is closed")
        assert block_id == 1
        self.sent.append(bytes(data))

    def receive(self, block_id: int) -> bytes:
        if self.closed:
            raise OSError("device is closed")
        assert block_id == 1
        self.receive_calls += 1
        if not self.reads:
            raise OSError("unexpected receive call")
        res = self.reads.pop(0)
        if isinstance(res, Exception):
            raise res
        return bytes(res)

    def close(self) -> None:
        self.closed = True


# No backoff delays in tests.
FAST_POLICY = RetryPolicy(attempts=3, initial_delay=0, max_delay=0, timeout=None)


@pytest.fixture
def make_keyboard():
    """Return a factory building (Keyboard, FakeHID) from a list of reads."""

    def factory(reads=None, policy=FAST_POLICY):
        hid = FakeHID(reads)
        return Keyboard(hid, retry_policy=policy), hid

    return factory
