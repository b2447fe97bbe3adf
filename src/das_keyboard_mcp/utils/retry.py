"""Retry executor with explicit attempt outcomes.

An attempt function returns one of three tagged results:

- :class:`Ok` carries the value and ends the loop.
- :class:`Retry` asks for another attempt after a backoff delay.
- :class:`Abort` carries an exception that is raised immediately.

Usage::

    def attempt():
        data = dev.receive(1)
        if not any(data):
            return Retry("no data yet")
        return Ok(data)

    data = run(attempt, RetryPolicy(attempts=10))
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Union

from ..errors import CancelledError, RetryTimeoutError


@dataclass(frozen=True)
class Ok:
    value: Any


@dataclass(frozen=True)
class Retry:
    reason: str = ""


@dataclass(frozen=True)
class Abort:
    error: BaseException


Outcome = Union[Ok, Retry, Abort]


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff.

    Attributes:
        attempts: Maximum number of attempts, including the first one.
        initial_delay: Wait before the second attempt, in seconds.
        max_delay: Upper bound for a single wait, in seconds.
        multiplier: Growth factor applied to the delay after each retry.
        timeout: Overall time budget in seconds, or ``None`` for no limit.
    """

    attempts: int = 50
    initial_delay: float = 0.005
    max_delay: float = 0.1
    multiplier: float = 2.0
    timeout: float | None = 2.0

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError(f"attempts must be >= 1, got {self.attempts}")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must not be negative")

    def delays(self) -> Iterator[float]:
        """Yield the wait before each retry (``attempts - 1`` values)."""
        delay = self.initial_delay
        for _ in range(self.attempts - 1):
            yield min(delay, self.max_delay)
            delay *= self.multiplier


def check_cancelled(cancel: threading.Event | None) -> None:
    """Raise :class:`CancelledError` if ``cancel`` has been set."""
    if cancel is not None and cancel.is_set():
        raise CancelledError("operation cancelled")


def run(
    attempt: Callable[[], Outcome],
    policy: RetryPolicy | None = None,
    cancel: threading.Event | None = None,
) -> Any:
    """Call ``attempt`` until it succeeds, aborts or the budget is spent.

    The cancel event is checked before every attempt and is also used to
    wait out the backoff, so setting it interrupts a pending delay.

    Raises:
        CancelledError: If ``cancel`` is set.
        RetryTimeoutError: If every attempt asked for a retry.
        Exception: Whatever an :class:`Abort` outcome carries.
    """
    policy = policy or RetryPolicy()
    deadline = None
    if policy.timeout is not None:
        deadline = time.monotonic() + policy.timeout

    delays = policy.delays()
    tries = 0
    last_reason = ""
    while True:
        check_cancelled(cancel)
        tries += 1
        outcome = attempt()

        if isinstance(outcome, Ok):
            return outcome.value
        if isinstance(outcome, Abort):
            raise outcome.error
        if not isinstance(outcome, Retry):
            raise TypeError(f"attempt returned {outcome!r}, want Ok, Retry or Abort")

        last_reason = outcome.reason
        delay = next(delays, None)
        if delay is None:
            break
        if deadline is not None and time.monotonic() + delay > deadline:
            break

        if cancel is not None:
            if cancel.wait(delay):
                raise CancelledError("operation cancelled")
        elif delay > 0:
            time.sleep(delay)

    detail = f": {last_reason}" if last_reason else ""
    raise RetryTimeoutError(f"gave up after {tries} attempt(s){detail}")
