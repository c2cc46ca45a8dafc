"""
Screen capture utilities using mss (cross-platform, fast)
"""
from typing import Optional, Tuple

import mss
from PIL import Image


class ScreenCapture:
    """
    Fast screen capture using mss.

    A fresh mss handle is opened per grab: captures are dispatched to worker
    threads and mss handles must not cross threads.
    """

    def __init__(self, monitor: int = 1):
        """
        Args:
            monitor: Monitor index (0 = all monitors, 1 = primary, 2+ = others)
        """
        self.monitor = monitor

    def _monitor_geometry(self, sct) -> dict:
        return sct.monitors[self.monitor]

    def capture(self, region: Optional[Tuple[int, int, int, int]] = None) -> Image.Image:
        """
        Capture screen or region.

        Args:
            region: Optional (x, y, width, height) tuple

        Returns:
            PIL Image in RGB format
        """
        with mss.mss() as sct:
            if region:
                monitor = {"left": region[0], "top": region[1], "width": region[2], "height": region[3]}
            else:
                monitor = self._monitor_geometry(sct)
            screenshot = sct.grab(monitor)

        # Convert to PIL Image (mss returns BGRA)
        return Image.frombytes("RGB", screenshot.size, screenshot.bgra, "raw", "BGRX")

    @property
    def screen_size(self) -> Tuple[int, int]:
        """Get current monitor size."""
        with mss.mss() as sct:
            mon = self._monitor_geometry(sct)
        return (mon["width"], mon["height"])

    @property
    def origin(self) -> Tuple[int, int]:
        """Top-left of the captured monitor in global screen coordinates."""
        with mss.mss() as sct:
            mon = self._monitor_geometry(sct)
        return (mon["left"], mon["top"])
