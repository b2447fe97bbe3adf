"""Per-key lighting control for the Das Keyboard 4Q over USB HID."""

from .errors import DasKeyboardError
from .keyboard import Keyboard
from .models import (
    NONE,
    ActiveEffect,
    Color,
    IdleEffect,
    KeyState,
    blink_active,
    breathe_active,
    set_color_active,
)

__version__ = "0.1.0"
