"""MCP server entry point for the Das Keyboard 4Q.

Exposes the keyboard's per-key lighting as tools via the Model Context
Protocol using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from mcp.server.fastmcp import FastMCP

from .cpu_meter import FUNCTION_KEYS, CpuSampler, cpu_key_states
from .keyboard import Keyboard
from .models.effects import (
    ACTIVE_EFFECTS,
    IDLE_EFFECTS,
    ActiveEffect,
    ActiveEffectKind,
)
from .models.key_state import MAX_LED_ID, Color, KeyState
from .transport.usb_connection import enumerate_devices

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "das-keyboard",
    instructions="MCP server for Das Keyboard 4Q per-key lighting",
)

# Global connection state
_keyboard: Keyboard | None = None


def _get_keyboard() -> Keyboard:
    """Get the open keyboard, raising if not connected."""
    if _keyboard is None or not _keyboard.is_open:
        raise RuntimeError(
            "Not connected to keyboard. Use the 'connect' tool first."
        )
    return _keyboard


def _build_active_effect(
    name: str,
    duration: float | None = None,
    cycle_count: int | None = None,
    cycle_duration: float | None = None,
) -> ActiveEffect:
    """Build an active effect by name and apply the modifiers it supports."""
    if name not in ACTIVE_EFFECTS:
        raise ValueError(
            f"Unknown active effect '{name}'. Valid: {list(ACTIVE_EFFECTS)}"
        )
    effect = ACTIVE_EFFECTS[name]()
    if duration is not None:
        effect = effect.with_duration(duration)
    if cycle_count is not None:
        effect = effect.with_cycle_count(cycle_count)
    if cycle_duration is not None:
        effect = effect.with_cycle_duration(cycle_duration)
    return effect


def _build_key_state(entry: dict[str, Any]) -> KeyState:
    """Build a KeyState from a tool argument dict."""
    if "key_id" not in entry:
        raise ValueError("Each key needs a 'key_id'")

    idle_name = entry.get("idle_effect", "set_color")
    if idle_name not in IDLE_EFFECTS:
        raise ValueError(
            f"Unknown idle effect '{idle_name}'. Valid: {list(IDLE_EFFECTS)}"
        )

    return KeyState(
        key_id=entry["key_id"],
        idle_effect=IDLE_EFFECTS[idle_name],
        idle_color=Color.parse(entry.get("idle_color", "#000000")),
        active_effect=_build_active_effect(
            entry.get("active_effect", "none"),
            duration=entry.get("duration"),
            cycle_count=entry.get("cycle_count"),
            cycle_duration=entry.get("cycle_duration"),
        ),
        active_color=Color.parse(entry.get("active_color", "#000000")),
    )


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def list_devices() -> dict[str, Any]:
    """List attached keyboards (lighting interface only)."""
    return {"devices": [d.to_dict() for d in enumerate_devices()]}


@mcp.tool()
def connect() -> dict[str, Any]:
    """Open a connection to the first Das Keyboard found.

    Auto-discovers the device by USB vendor id (0x24F0) on HID interface 1.
    """
    global _keyboard
    if _keyboard is not None and _keyboard.is_open:
        return {"connected": True, "message": "Already connected"}

    _keyboard = Keyboard.open()
    result: dict[str, Any] = {"connected": True}
    info = getattr(_keyboard.transport, "device_info", None)
    if info is not None:
        result.update(info.to_dict())
    return result


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the connection to the keyboard."""
    global _keyboard
    if _keyboard is None:
        return {"disconnected": True}
    if _keyboard.is_open:
        _keyboard.close()
    _keyboard = None
    return {"disconnected": True}


@mcp.tool()
def get_device_info() -> dict[str, Any]:
    """Return USB descriptor information for the connected keyboard."""
    kb = _get_keyboard()
    info = getattr(kb.transport, "device_info", None)
    if info is None:
        return {"error": "No device information available"}
    return info.to_dict()


# ─── LIGHTING TOOLS ───────────────────────────────────────────────────

@mcp.tool()
def list_effects() -> dict[str, Any]:
    """List idle and active effects and the modifiers each active effect takes."""
    modifiers = {
        ActiveEffectKind.NONE: [],
        ActiveEffectKind.SET_COLOR: ["duration"],
        ActiveEffectKind.BLINK: ["cycle_count", "cycle_duration"],
        ActiveEffectKind.BREATHE: ["cycle_count"],
    }
    return {
        "idle": list(IDLE_EFFECTS),
        "active": {
            name: modifiers[factory().kind] for name, factory in ACTIVE_EFFECTS.items()
        },
        "max_key_id": MAX_LED_ID,
    }


@mcp.tool()
def set_key_state(
    key_id: int,
    idle_color: str = "#000000",
    idle_effect: str = "set_color",
    active_effect: str = "none",
    active_color: str = "#000000",
    duration: float | None = None,
    cycle_count: int | None = None,
    cycle_duration: float | None = None,
) -> dict[str, Any]:
    """Set the lighting of a single key.

    Args:
        key_id: LED id (0-124).
        idle_color: Color while not pressed, "#RRGGBB" or "r,g,b".
        idle_effect: set_color, breathe, color_cycle or blink.
        active_effect: none, set_color, blink or breathe.
        active_color: Color after the key is pressed.
        duration: Seconds a set_color active effect lasts.
        cycle_count: Number of blink/breathe cycles.
        cycle_duration: Seconds per blink cycle.
    """
    return set_keys([{
        "key_id": key_id,
        "idle_color": idle_color,
        "idle_effect": idle_effect,
        "active_effect": active_effect,
        "active_color": active_color,
        "duration": duration,
        "cycle_count": cycle_count,
        "cycle_duration": cycle_duration,
    }])


@mcp.tool()
def set_keys(keys: list[dict[str, Any]]) -> dict[str, Any]:
    """Set the lighting of several keys in one transaction.

    Args:
        keys: List of dicts with the same fields as set_key_state, e.g.
              [{"key_id": 17, "idle_color": "#ff0000"}].
    """
    if not keys:
        return {"error": "No keys given"}
    try:
        states = [_build_key_state(k) for k in keys]
    except ValueError as e:
        return {"error": str(e)}

    _get_keyboard().set_state(*states)
    return {"applied": [s.to_dict() for s in states]}


@mcp.tool()
def set_all_keys(
    idle_color: str,
    active_effect: str = "none",
    active_color: str = "#000000",
) -> dict[str, Any]:
    """Give every key the same idle color and active effect.

    Args:
        idle_color: Color while not pressed, "#RRGGBB" or "r,g,b".
        active_effect: none, set_color, blink or breathe.
        active_color: Color after the key is pressed.
    """
    try:
        idle = Color.parse(idle_color)
        active = Color.parse(active_color)
        effect = _build_active_effect(active_effect)
    except ValueError as e:
        return {"error": str(e)}

    _get_keyboard().set_all(idle_color=idle, active_effect=effect, active_color=active)
    return {"applied": MAX_LED_ID + 1, "idle_color": idle.to_hex()}


@mcp.tool()
def show_cpu_load(interval: float = 1.0) -> dict[str, Any]:
    """Sample CPU usage over `interval` seconds and show it on F1-F12.

    System time lights keys red from F1 upward, user time blue after it.

    Args:
        interval: Sampling window in seconds (0.1-60).
    """
    if not 0.1 <= interval <= 60:
        return {"error": "Interval must be 0.1-60 seconds"}

    sampler = CpuSampler()
    sampler.update()
    time.sleep(interval)
    sampler.update()
    system, user, idle = sampler.rates()

    _get_keyboard().set_state(*cpu_key_states(system, user, idle))
    total = system + user + idle or 1.0
    return {
        "system": round(100 * system / total, 1),
        "user": round(100 * user / total, 1),
        "idle": round(100 * idle / total, 1),
        "keys": len(FUNCTION_KEYS),
    }


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
