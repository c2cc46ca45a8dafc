"""
Execution backends.

DesktopBackend (pyautogui/mss) and BrowserBackend (Playwright) live in their
own modules and are imported from there, so that importing the package does
not require a display or a browser.
"""
from .base import ExecutionBackend, normalize_modifiers, MODIFIER_ORDER

__all__ = ["ExecutionBackend", "normalize_modifiers", "MODIFIER_ORDER"]
