"""
Pointer and keyboard primitives for the desktop backend.

Coordinates are global screen pixels. Every function blocks; the backend
runs them in a worker thread.
"""
import random
import sys
import time
from typing import List, Optional

import pyautogui


# The kill switch replaces pyautogui's corner failsafe
pyautogui.FAILSAFE = False
pyautogui.PAUSE = 0.02

# DOM-style key names -> pyautogui key names
KEY_MAP = {
    "enter": "enter", "return": "enter",
    "escape": "esc", "esc": "esc",
    "tab": "tab", "backspace": "backspace", "delete": "delete",
    "space": "space", " ": "space",
    "arrowup": "up", "arrowdown": "down", "arrowleft": "left", "arrowright": "right",
    "pageup": "pageup", "pagedown": "pagedown", "home": "home", "end": "end",
}

MODIFIER_MAP = {
    "ctrl": "ctrl",
    "shift": "shift",
    "alt": "alt",
    "meta": "command" if sys.platform == "darwin" else "win",
}


def _curve_point(start, bend, end, t):
    """Quadratic bezier through one bend point."""
    u = 1 - t
    return (
        u * u * start[0] + 2 * u * t * bend[0] + t * t * end[0],
        u * u * start[1] + 2 * u * t * bend[1] + t * t * end[1],
    )


def glide_to(x: int, y: int, duration: float = 0.2, steps: int = 20):
    """
    Move the pointer along a slightly bent path instead of jumping.
    Canvas-backed surfaces often ignore a click that arrives with no
    preceding pointer motion.
    """
    start = pyautogui.position()
    span = max(abs(x - start[0]), abs(y - start[1]))
    wobble = min(span * 0.2, 60)
    bend = (
        (start[0] + x) / 2 + random.uniform(-wobble, wobble),
        (start[1] + y) / 2 + random.uniform(-wobble, wobble),
    )
    for i in range(1, steps + 1):
        t = i / steps
        t = t * t * (3 - 2 * t)  # ease in-out
        px, py = _curve_point(start, bend, (x, y), t)
        pyautogui.moveTo(int(px), int(py), _pause=False)
        time.sleep(duration / steps)
    pyautogui.moveTo(x, y, _pause=False)


def click_at(x: int, y: int, human_like: bool = True):
    if human_like:
        glide_to(x, y)
        time.sleep(0.05)
    else:
        pyautogui.moveTo(x, y)
    pyautogui.click(x, y)


def type_text(text: str, human_like: bool = True):
    """Type into whatever has focus, with jittered keystrokes when human_like."""
    if not human_like:
        pyautogui.write(text, interval=0.02)
        return
    for char in text:
        pyautogui.write(char, interval=0)
        time.sleep(random.uniform(0.03, 0.1))


def press_key(key: str, modifiers: Optional[List[str]] = None):
    """Press a key, holding canonical modifiers (ctrl/shift/alt/meta)."""
    name = KEY_MAP.get(key.lower(), key.lower() if len(key) > 1 else key)
    held = [MODIFIER_MAP[m] for m in (modifiers or []) if m in MODIFIER_MAP]
    if held:
        pyautogui.hotkey(*held, name)
    else:
        pyautogui.press(name)
