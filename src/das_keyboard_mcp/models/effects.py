"""Lighting effects for the idle and the pressed (active) state of a key.

Idle effects are a single byte. Active effects carry three parameter bytes
whose meaning depends on the effect kind; :class:`ActiveEffect` is built
with one of the named constructors and tuned with the ``with_*`` modifiers,
each of which returns a new descriptor.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import timedelta
from enum import IntEnum
from typing import ClassVar, Union

Duration = Union[float, timedelta]

_NS_PER_SECOND = 1_000_000_000


class IdleEffect(IntEnum):
    """Behavior of a key while it is not pressed."""

    SET_COLOR = 0x01  # steady single color
    BREATHE = 0x08  # continuous high/low intensity phases
    COLOR_CYCLE = 0x14  # rainbow
    BLINK = 0x1F  # on/off at regular intervals


class ActiveEffectKind(IntEnum):
    """Behavior of a key after it has been pressed."""

    NONE = 0x00
    BREATHE = 0x08
    SET_COLOR = 0x1E
    BLINK = 0x1F


def is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _to_ns(d: Duration) -> int:
    if isinstance(d, timedelta):
        d = d.total_seconds()
    if isinstance(d, bool) or not isinstance(d, (int, float)):
        raise ValueError(f"Duration must be seconds or a timedelta, got {d!r}")
    return int(round(d * _NS_PER_SECOND))


def _round_units(d: Duration, precision_ns: int) -> int:
    """Round ``d`` to a whole number of ``precision_ns`` units, half away from zero."""
    ns = _to_ns(d)
    if ns < 0:
        return -((-ns + precision_ns // 2) // precision_ns)
    return (ns + precision_ns // 2) // precision_ns


@dataclass(frozen=True)
class ActiveEffect:
    """Active effect descriptor: effect kind plus three parameter bytes."""

    # set_color: 270 ms per unit in param0
    DURATION_PRECISION_NS: ClassVar[int] = 270_000_000
    # blink: the default 0x01F4 (500) is a 1.05 s cycle
    CYCLE_PRECISION_NS: ClassVar[int] = 1_050_000_000 // 500

    kind: ActiveEffectKind = ActiveEffectKind.NONE
    param0: int = 0
    param1: int = 0
    param2: int = 0

    def __post_init__(self) -> None:
        for name in ("param0", "param1", "param2"):
            value = getattr(self, name)
            if not is_int(value) or not 0 <= value <= 0xFF:
                raise ValueError(f"{name} must be an integer 0-255, got {value!r}")

    @property
    def effect_id(self) -> int:
        return int(self.kind)

    @property
    def params(self) -> bytes:
        return bytes([self.param0, self.param1, self.param2])

    def with_duration(self, d: Duration) -> ActiveEffect:
        """How long a set-color effect lasts before the key reverts to idle.

        Only applies to :attr:`ActiveEffectKind.SET_COLOR`. Values that round
        to less than 1 or more than 255 units of 270 ms are ignored.
        """
        if self.kind != ActiveEffectKind.SET_COLOR:
            return self
        value = _round_units(d, self.DURATION_PRECISION_NS)
        if not 1 <= value <= 0xFF:
            return self
        return replace(self, param0=value)

    def with_cycle_count(self, count: int) -> ActiveEffect:
        """How often a blink or breathe effect cycles.

        Raises:
            ValueError: If ``count`` is not an integer.
        """
        if not is_int(count):
            raise ValueError(f"Cycle count must be an integer, got {count!r}")
        if self.kind not in (ActiveEffectKind.BLINK, ActiveEffectKind.BREATHE):
            return self
        if not 0 <= count <= 0xFF:
            return self
        return replace(self, param2=count)

    def with_cycle_duration(self, d: Duration) -> ActiveEffect:
        """Length of each on/off cycle of a blink effect (default 1.05 s)."""
        if self.kind != ActiveEffectKind.BLINK:
            return self
        value = _round_units(d, self.CYCLE_PRECISION_NS)
        if not 1 <= value <= 0xFFFF:
            return self
        return replace(self, param0=(value >> 8) & 0xFF, param1=value & 0xFF)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.name.lower(),
            "effect_id": self.effect_id,
            "params": self.params.hex(" "),
        }


NONE = ActiveEffect()


def set_color_active(duration: Duration | None = None) -> ActiveEffect:
    """Light the key in a single color, reverting after 1.9 s by default."""
    effect = ActiveEffect(ActiveEffectKind.SET_COLOR, 0x07, 0xD0, 0x00)
    if duration is not None:
        effect = effect.with_duration(duration)
    return effect


def blink_active(
    cycle_count: int | None = None,
    cycle_duration: Duration | None = None,
) -> ActiveEffect:
    """Blink the key when pressed."""
    effect = ActiveEffect(ActiveEffectKind.BLINK, 0x01, 0xF4, 0x03)
    if cycle_count is not None:
        effect = effect.with_cycle_count(cycle_count)
    if cycle_duration is not None:
        effect = effect.with_cycle_duration(cycle_duration)
    return effect


def breathe_active(cycle_count: int | None = None) -> ActiveEffect:
    """Smoothly cycle the key through high/low intensity when pressed."""
    # TODO: param0/param1 (0x03E8) are still undecoded; expose them once
    # captures show what they control.
    effect = ActiveEffect(ActiveEffectKind.BREATHE, 0x03, 0xE8, 0x03)
    if cycle_count is not None:
        effect = effect.with_cycle_count(cycle_count)
    return effect


ACTIVE_EFFECTS = {
    "none": lambda: NONE,
    "set_color": set_color_active,
    "blink": blink_active,
    "breathe": breathe_active,
}

IDLE_EFFECTS: dict[str, IdleEffect] = {e.name.lower(): e for e in IdleEffect}
