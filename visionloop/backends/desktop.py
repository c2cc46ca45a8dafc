"""
Desktop backend - real screen capture (mss) and real input (pyautogui).
"""
import asyncio
import logging
import time
from typing import Any, Dict, List, Optional, Tuple

from ..utils import mouse
from ..utils.screen import ScreenCapture
from ..vision.types import Screenshot
from .base import ExecutionBackend, normalize_modifiers

logger = logging.getLogger(__name__)


class DesktopBackend(ExecutionBackend):
    """
    Real desktop control via pyautogui and screen capture.

    With safe_mode the backend logs what it would do and reports success
    instead of moving the real cursor.
    """

    def __init__(self, monitor: int = 1, safe_mode: bool = False, human_like: bool = True):
        self._screen = ScreenCapture(monitor=monitor)
        self._origin: Optional[Tuple[int, int]] = None
        self.safe_mode = safe_mode
        self.human_like = human_like
        self.action_log: List[Dict[str, Any]] = []

    def _log_action(self, action: str, **kwargs):
        self.action_log.append({"action": action, "time": time.time(), **kwargs})
        if self.safe_mode:
            logger.info("[SAFE] Would %s %s", action, kwargs)

    async def capture(self) -> Screenshot:
        image = await asyncio.to_thread(self._screen.capture)
        return Screenshot.from_image(image)

    def _to_global(self, x: int, y: int) -> Tuple[int, int]:
        # Screenshot coordinates are relative to the captured monitor
        if self._origin is None:
            self._origin = self._screen.origin
        return (x + self._origin[0], y + self._origin[1])

    async def click_at(self, x: int, y: int) -> bool:
        self._log_action("click", x=x, y=y)
        if self.safe_mode:
            return True
        gx, gy = self._to_global(x, y)
        try:
            await asyncio.to_thread(mouse.click_at, gx, gy, self.human_like)
        except Exception as e:
            logger.error("[DesktopBackend] click at (%d, %d) failed: %s", x, y, e)
            return False
        return True

    async def type_text(self, text: str) -> bool:
        self._log_action("type", text=text)
        if self.safe_mode:
            return True
        try:
            await asyncio.to_thread(mouse.type_text, text, self.human_like)
        except Exception as e:
            logger.error("[DesktopBackend] typing failed: %s", e)
            return False
        return True

    async def send_key(self, key: str, modifiers: Optional[List[str]] = None) -> bool:
        mods = normalize_modifiers(modifiers)
        self._log_action("press_key", key=key, modifiers=mods)
        if self.safe_mode:
            return True
        try:
            await asyncio.to_thread(mouse.press_key, key, mods)
        except Exception as e:
            logger.error("[DesktopBackend] key %s failed: %s", key, e)
            return False
        return True

    async def navigate(self, url: str) -> bool:
        logger.warning("[DesktopBackend] Cannot navigate to %s: no browser attached", url)
        return False

    def viewport_size(self) -> Tuple[int, int]:
        return self._screen.screen_size
