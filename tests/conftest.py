"""
Shared pytest fixtures and fake collaborators.

Nothing here touches the display, an OCR model or a browser: the backend
records actions and serves blank images, the reader replays scripted
frames.
"""
import asyncio

import pytest
from PIL import Image

from visionloop.backends.base import ExecutionBackend
from visionloop.config import Config, VisionConfig
from visionloop.vision.poller import ConditionalPoller
from visionloop.vision.recognizer import Recognizer
from visionloop.vision.types import Screenshot


def box(text, x=0, y=0, w=40, h=20, conf=0.9):
    """One easyocr-style detection: (quad, text, confidence 0..1)."""
    quad = [[x, y], [x + w, y], [x + w, y + h], [x, y + h]]
    return (quad, text, conf)


class FakeReader:
    """
    Replays frames of detections, one per readtext() call. The last frame
    repeats once the script runs out. A frame that is an Exception is
    raised instead.
    """

    def __init__(self, frames=None):
        self.frames = list(frames or [[]])
        self.calls = 0

    def readtext(self, image):
        frame = self.frames[min(self.calls, len(self.frames) - 1)]
        self.calls += 1
        if isinstance(frame, Exception):
            raise frame
        return list(frame)


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeBackend(ExecutionBackend):
    """Records every primitive; results are configurable per operation."""

    def __init__(self, dom: bool = False, click_ok: bool = True, on_capture=None):
        self.dom = dom
        self.click_ok = click_ok
        self.dom_ok = True
        self.on_capture = on_capture
        self.captures = 0
        self.clicks = []
        self.typed = []
        self.keys = []
        self.navigations = []
        self.dom_calls = []

    async def capture(self) -> Screenshot:
        self.captures += 1
        if self.on_capture is not None:
            self.on_capture(self.captures)
        return Screenshot.from_image(Image.new("RGB", (64, 48), "white"))

    async def click_at(self, x: int, y: int) -> bool:
        self.clicks.append((x, y))
        return self.click_ok

    async def type_text(self, text: str) -> bool:
        self.typed.append(text)
        return True

    async def send_key(self, key, modifiers=None) -> bool:
        self.keys.append((key, list(modifiers or [])))
        return True

    async def navigate(self, url: str) -> bool:
        self.navigations.append(url)
        return True

    async def click_element(self, selector, xpath) -> bool:
        self.dom_calls.append(("click", selector or xpath, None))
        return self.dom_ok

    async def fill_element(self, selector, xpath, value) -> bool:
        self.dom_calls.append(("fill", selector or xpath, value))
        return self.dom_ok

    async def select_option(self, selector, xpath, value) -> bool:
        self.dom_calls.append(("select", selector or xpath, value))
        return self.dom_ok

    @property
    def supports_dom(self) -> bool:
        return self.dom


@pytest.fixture
def vision_config():
    return VisionConfig(confidence_threshold=60.0)


@pytest.fixture
def test_config(tmp_path):
    return Config(
        project_root=tmp_path,
        data_dir=tmp_path / "data",
        db_path=tmp_path / "data" / "runs.db",
        screenshot_dir=tmp_path / "data" / "screenshots",
        navigation_delay_ms=0,
        input_focus_delay_ms=0,
    )


@pytest.fixture
def make_recognizer(vision_config):
    """Initialized Recognizer over a FakeReader (the reader is returned too)."""
    def _make(frames=None, initialized=True):
        reader = FakeReader(frames)
        recognizer = Recognizer(vision_config, reader=reader)
        if initialized:
            asyncio.run(recognizer.initialize())
        return recognizer, reader
    return _make


@pytest.fixture
def make_poller(vision_config):
    def _make(backend, recognizer, clock=None, max_iterations=10000, click_settle_ms=0):
        return ConditionalPoller(
            backend,
            recognizer,
            vision_config,
            max_iterations=max_iterations,
            click_settle_ms=click_settle_ms,
            clock=clock or FakeClock(),
        )
    return _make
