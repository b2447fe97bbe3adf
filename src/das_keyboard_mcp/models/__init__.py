"""Data models for key states, colors and lighting effects."""

from .effects import (
    NONE,
    ActiveEffect,
    ActiveEffectKind,
    IdleEffect,
    blink_active,
    breathe_active,
    set_color_active,
)
from .key_state import BLACK, MAX_LED_ID, Color, KeyState
