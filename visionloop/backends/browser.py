"""
Browser backend - Playwright page as both the DOM and the vision surface.
"""
import asyncio
import io
import logging
from typing import List, Optional, Tuple

from PIL import Image

from ..vision.types import Screenshot
from .base import ExecutionBackend, normalize_modifiers

logger = logging.getLogger(__name__)

PLAYWRIGHT_MODIFIERS = {"ctrl": "Control", "shift": "Shift", "alt": "Alt", "meta": "Meta"}

PLAYWRIGHT_KEYS = {
    "enter": "Enter", "return": "Enter", "escape": "Escape", "esc": "Escape",
    "tab": "Tab", "backspace": "Backspace", "delete": "Delete", "space": "Space",
    "arrowup": "ArrowUp", "arrowdown": "ArrowDown", "arrowleft": "ArrowLeft", "arrowright": "ArrowRight",
    "pageup": "PageUp", "pagedown": "PageDown", "home": "Home", "end": "End",
}


class BrowserBackend(ExecutionBackend):
    """Playwright-based browser control."""

    def __init__(
        self,
        viewport_width: int = 1280,
        viewport_height: int = 800,
        headless: bool = False,
        element_timeout_ms: int = 10000,
    ):
        self.viewport_width = viewport_width
        self.viewport_height = viewport_height
        self.headless = headless
        self.element_timeout_ms = element_timeout_ms
        self._playwright = None
        self._browser = None
        self._context = None
        self._page = None

    async def init(self):
        """Initialize Playwright browser."""
        from playwright.async_api import async_playwright
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self.headless,
            args=[
                f"--window-size={self.viewport_width},{self.viewport_height}",
                "--no-default-browser-check",
                "--no-first-run",
            ],
        )
        self._context = await self._browser.new_context(
            viewport={"width": self.viewport_width, "height": self.viewport_height},
        )
        self._page = await self._context.new_page()

    async def close(self):
        """Close browser."""
        try:
            if self._page:
                await self._page.close()
            if self._context:
                await self._context.close()
            if self._browser:
                await self._browser.close()
            if self._playwright:
                await self._playwright.stop()
        except Exception as e:
            logger.warning("[BrowserBackend] Error while closing: %s", e)
        self._page = None
        self._context = None
        self._browser = None
        self._playwright = None

    @property
    def page(self):
        return self._page

    @property
    def supports_dom(self) -> bool:
        return True

    def _locator(self, selector: Optional[str], xpath: Optional[str]):
        if selector:
            return self._page.locator(selector).first
        if xpath:
            return self._page.locator(f"xpath={xpath}").first
        return None

    async def capture(self) -> Screenshot:
        if not self._page:
            raise RuntimeError("Browser not initialized")
        buffer = await self._page.screenshot()
        image = Image.open(io.BytesIO(buffer))
        image.load()
        return Screenshot.from_image(image)

    async def click_at(self, x: int, y: int) -> bool:
        try:
            await self._page.mouse.click(x, y)
        except Exception as e:
            logger.error("[BrowserBackend] click at (%d, %d) failed: %s", x, y, e)
            return False
        return True

    async def type_text(self, text: str) -> bool:
        try:
            await self._page.keyboard.type(text)
        except Exception as e:
            logger.error("[BrowserBackend] typing failed: %s", e)
            return False
        return True

    async def send_key(self, key: str, modifiers: Optional[List[str]] = None) -> bool:
        name = PLAYWRIGHT_KEYS.get(key.lower(), key)
        combo = [PLAYWRIGHT_MODIFIERS[m] for m in normalize_modifiers(modifiers)] + [name]
        try:
            await self._page.keyboard.press("+".join(combo))
        except Exception as e:
            logger.error("[BrowserBackend] key %s failed: %s", key, e)
            return False
        return True

    async def navigate(self, url: str) -> bool:
        if not self._page or not url:
            return False
        for attempt in range(3):
            try:
                await self._page.goto(url, timeout=30000, wait_until="domcontentloaded")
                return True
            except Exception as e:
                logger.warning("[BrowserBackend] Navigation to %s failed (attempt %d): %s", url, attempt + 1, e)
                if attempt < 2:
                    await asyncio.sleep(2)
        return False

    async def click_element(self, selector: Optional[str], xpath: Optional[str]) -> bool:
        locator = self._locator(selector, xpath)
        if locator is None:
            return False
        try:
            await locator.click(timeout=self.element_timeout_ms)
        except Exception as e:
            logger.error("[BrowserBackend] click on %s failed: %s", selector or xpath, e)
            return False
        return True

    async def fill_element(self, selector: Optional[str], xpath: Optional[str], value: str) -> bool:
        locator = self._locator(selector, xpath)
        if locator is None:
            return False
        try:
            await locator.fill(value, timeout=self.element_timeout_ms)
        except Exception as e:
            logger.error("[BrowserBackend] fill on %s failed: %s", selector or xpath, e)
            return False
        return True

    async def select_option(self, selector: Optional[str], xpath: Optional[str], value: str) -> bool:
        locator = self._locator(selector, xpath)
        if locator is None:
            return False
        try:
            try:
                await locator.select_option(value=value, timeout=self.element_timeout_ms)
            except Exception:
                # Recorded dropdown values are usually the visible label
                await locator.select_option(label=value, timeout=self.element_timeout_ms)
        except Exception as e:
            logger.error("[BrowserBackend] select on %s failed: %s", selector or xpath, e)
            return False
        return True

    def viewport_size(self) -> Tuple[int, int]:
        return (self.viewport_width, self.viewport_height)
