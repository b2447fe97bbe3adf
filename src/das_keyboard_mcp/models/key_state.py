"""Per-key lighting state and colors."""

from __future__ import annotations

from dataclasses import dataclass, field

from .effects import NONE, ActiveEffect, IdleEffect, is_int

MAX_LED_ID = 124


@dataclass(frozen=True)
class Color:
    """24-bit RGB color. Alpha is not supported by the keyboard."""

    r: int = 0
    g: int = 0
    b: int = 0

    def __post_init__(self) -> None:
        for name in ("r", "g", "b"):
            value = getattr(self, name)
            if not is_int(value) or not 0 <= value <= 255:
                raise ValueError(
                    f"Color component {name} must be an integer 0-255, got {value!r}"
                )

    def to_bytes(self) -> bytes:
        return bytes([self.r, self.g, self.b])

    def to_hex(self) -> str:
        return f"#{self.r:02x}{self.g:02x}{self.b:02x}"

    @classmethod
    def parse(cls, text: str) -> Color:
        """Parse ``#RRGGBB``, ``RRGGBB`` or ``r,g,b``."""
        if not isinstance(text, str):
            raise ValueError(f"Invalid color {text!r}: want a string")
        s = text.strip()
        if "," in s:
            parts = [p.strip() for p in s.split(",")]
            if len(parts) != 3:
                raise ValueError(f"Invalid color {text!r}: want r,g,b")
            try:
                return cls(*(int(p, 0) for p in parts))
            except ValueError as e:
                raise ValueError(f"Invalid color {text!r}: {e}") from e

        s = s.lstrip("#")
        if len(s) != 6:
            raise ValueError(f"Invalid color {text!r}: want #RRGGBB")
        try:
            value = int(s, 16)
        except ValueError as e:
            raise ValueError(f"Invalid color {text!r}: {e}") from e
        return cls((value >> 16) & 0xFF, (value >> 8) & 0xFF, value & 0xFF)


BLACK = Color()


@dataclass(frozen=True)
class KeyState:
    """Desired state of one LED.

    "Idle" refers to the key's normal state, "active" to its state after it
    has been pressed. Some physical keys (space bar, right shift, ...) map to
    more than one LED id.
    """

    key_id: int
    idle_effect: IdleEffect = IdleEffect.SET_COLOR
    idle_color: Color = field(default_factory=Color)
    active_effect: ActiveEffect = NONE
    active_color: Color = field(default_factory=Color)

    def __post_init__(self) -> None:
        if not is_int(self.key_id) or not 0 <= self.key_id <= MAX_LED_ID:
            raise ValueError(
                f"Key id must be an integer 0-{MAX_LED_ID}, got {self.key_id!r}"
            )

    def to_dict(self) -> dict:
        return {
            "key_id": self.key_id,
            "idle_effect": self.idle_effect.name.lower(),
            "idle_color": self.idle_color.to_hex(),
            "active_effect": self.active_effect.to_dict(),
            "active_color": self.active_color.to_hex(),
        }
