import asyncio
import io
from types import SimpleNamespace

from PIL import Image

from visionloop.backends.base import normalize_modifiers
from visionloop.backends.browser import BrowserBackend


class FakeLocator:
    def __init__(self, page, target):
        self.page = page
        self.target = target
        self.first = self

    async def click(self, timeout=None):
        self.page.calls.append(("click", self.target))

    async def fill(self, value, timeout=None):
        self.page.calls.append(("fill", self.target, value))

    async def select_option(self, value=None, label=None, timeout=None):
        if value is not None and value not in self.page.option_values:
            raise ValueError(f"no option with value {value!r}")
        self.page.calls.append(("select", self.target, value or label))


class FakePage:
    def __init__(self):
        self.calls = []
        self.option_values = {"uk"}
        self.goto_failures = 0

        async def press(combo):
            self.calls.append(("press", combo))

        async def type_(text):
            self.calls.append(("type", text))

        async def mouse_click(x, y):
            self.calls.append(("mouse", x, y))

        self.keyboard = SimpleNamespace(press=press, type=type_)
        self.mouse = SimpleNamespace(click=mouse_click)

    def locator(self, target):
        return FakeLocator(self, target)

    async def goto(self, url, timeout=None, wait_until=None):
        if self.goto_failures:
            self.goto_failures -= 1
            raise TimeoutError("slow site")
        self.calls.append(("goto", url))

    async def screenshot(self):
        buffer = io.BytesIO()
        Image.new("RGB", (20, 10), "white").save(buffer, format="PNG")
        return buffer.getvalue()


def browser():
    backend = BrowserBackend()
    backend._page = FakePage()
    return backend, backend._page


def test_normalize_modifiers():
    assert normalize_modifiers({"shiftKey": True, "ctrlKey": True, "altKey": False}) == ["ctrl", "shift"]
    assert normalize_modifiers(["Command", "alt"]) == ["alt", "meta"]
    assert normalize_modifiers("control") == ["ctrl"]
    assert normalize_modifiers(None) == []


def test_browser_keyboard_and_mouse():
    backend, page = browser()

    async def run():
        await backend.send_key("enter")
        await backend.send_key("a", {"metaKey": True, "shiftKey": True})
        await backend.type_text("hello")
        await backend.click_at(3, 4)

    asyncio.run(run())
    assert page.calls == [
        ("press", "Enter"),
        ("press", "Shift+Meta+a"),
        ("type", "hello"),
        ("mouse", 3, 4),
    ]


def test_browser_dom_operations():
    backend, page = browser()

    async def run():
        return [
            await backend.click_element("#go", None),
            await backend.fill_element(None, "//input[@name='q']", "cats"),
            await backend.select_option("#country", None, "uk"),
            await backend.select_option("#country", None, "United Kingdom"),
            await backend.click_element(None, None),
        ]

    assert asyncio.run(run()) == [True, True, True, True, False]
    assert page.calls == [
        ("click", "#go"),
        ("fill", "xpath=//input[@name='q']", "cats"),
        ("select", "#country", "uk"),
        ("select", "#country", "United Kingdom"),
    ]


def test_browser_capture():
    backend, _ = browser()
    screenshot = asyncio.run(backend.capture())
    assert (screenshot.width, screenshot.height) == (20, 10)
    assert backend.supports_dom


def test_browser_navigate_retries(monkeypatch):
    backend, page = browser()
    page.goto_failures = 1

    async def no_wait(seconds):
        return None

    monkeypatch.setattr("visionloop.backends.browser.asyncio.sleep", no_wait)
    assert asyncio.run(backend.navigate("https://example.com"))
    assert page.calls == [("goto", "https://example.com")]
