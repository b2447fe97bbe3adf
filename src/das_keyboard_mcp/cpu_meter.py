"""Color the F1-F12 keys according to the current CPU usage.

The system share of CPU time is shown in red from F1 upward, the user
share in blue after it, and idle keys stay dark. A key on the boundary
between two shares gets a mix weighted by how much of it each share
covers.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path

from .models.effects import IdleEffect
from .models.key_state import BLACK, Color, KeyState

logger = logging.getLogger(__name__)

FUNCTION_KEYS: list[int] = [
    0x11, 0x17, 0x1D, 0x23,  # F1-F4
    0x29, 0x2F, 0x35, 0x3B,  # F5-F8
    0x41, 0x47, 0x4D, 0x53,  # F9-F12
]

PROC_STAT = "/proc/stat"

# Field offsets in the "cpu" line of /proc/stat
FIELD_USER = 0
FIELD_NICE = 1
FIELD_IDLE = 3
NUM_FIELDS = 9


class CpuSampler:
    """Tracks the aggregate CPU counters from ``/proc/stat``.

    The first :meth:`update` only records the counters; every later call
    computes rates since the previous call.
    """

    def __init__(self, path: str | Path = PROC_STAT) -> None:
        self._path = Path(path)
        self._counters: list[int] = []
        self._rates: list[float] = []

    @property
    def ready(self) -> bool:
        return bool(self._rates) and not any(math.isnan(r) for r in self._rates)

    def update(self) -> None:
        """Read the counters and recompute the rates.

        Raises:
            ValueError: If the file has no usable ``cpu`` line.
        """
        for line in self._path.read_text().splitlines():
            fields = line.split()
            if len(fields) < NUM_FIELDS + 1 or fields[0] != "cpu":
                continue

            values = [int(v) for v in fields[1 : NUM_FIELDS + 1]]
            if len(self._counters) < NUM_FIELDS:
                self._rates = [math.nan] * NUM_FIELDS
            else:
                self._rates = [
                    (v - old) / 10.0 for v, old in zip(values, self._counters)
                ]
            self._counters = values
            return

        raise ValueError(f"No aggregate cpu line in {self._path}")

    def rates(self) -> tuple[float, float, float]:
        """Return the (system, user, idle) rates since the previous update."""
        system = user = idle = 0.0
        for i, rate in enumerate(self._rates):
            if math.isnan(rate):
                continue
            if i in (FIELD_USER, FIELD_NICE):
                user += rate
            elif i == FIELD_IDLE:
                idle += rate
            else:
                system += rate
        return system, user, idle


def cpu_key_states(
    system: float,
    user: float,
    idle: float,
    keys: list[int] | None = None,
) -> list[KeyState]:
    """Map CPU shares to idle colors of ``keys`` (F1-F12 by default)."""
    keys = FUNCTION_KEYS if keys is None else keys
    total = system + user + idle
    if total <= 0:
        return [KeyState(key_id, IdleEffect.SET_COLOR, BLACK) for key_id in keys]

    system_keys = len(keys) * system / total
    user_keys = len(keys) * user / total
    busy_keys = system_keys + user_keys

    states = []
    for i, key_id in enumerate(keys):
        color = BLACK
        if i + 1 <= system_keys:
            color = Color(r=0xFF)
        elif i < system_keys:
            # Transition from system to user CPU: mix red and blue
            # according to their weights.
            weight_red = system_keys - math.floor(system_keys)
            weight_blue = min(1.0 - weight_red, user_keys)
            # value may be <1 if user_keys < 1
            value = weight_red + weight_blue
            if weight_red < weight_blue:
                red = value * weight_red / weight_blue
                blue = value
            else:
                red = value
                blue = value * weight_blue / weight_red
            color = Color(r=int(255.0 * red + 0.5), b=int(255.0 * blue + 0.5))
        elif i + 1 <= busy_keys:
            color = Color(b=0xFF)
        elif i < busy_keys:
            blue = busy_keys - math.floor(busy_keys)
            color = Color(b=int(255.0 * blue + 0.5))

        states.append(KeyState(key_id, IdleEffect.SET_COLOR, color))

    logger.debug(
        "CPU system=%.1f user=%.1f idle=%.1f -> %.2f red, %.2f blue keys",
        system, user, idle, system_keys, user_keys,
    )
    return states
