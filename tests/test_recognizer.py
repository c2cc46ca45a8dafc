import asyncio

import pytest
from PIL import Image

from visionloop.errors import InitializationError, RecognitionError
from visionloop.vision.recognizer import Recognizer
from visionloop.vision.types import Screenshot

from conftest import FakeReader, box


def blank():
    return Screenshot.from_image(Image.new("RGB", (32, 32), "white"))


def test_recognize_before_initialize_raises(vision_config):
    recognizer = Recognizer(vision_config, reader=FakeReader())
    assert not recognizer.is_initialized
    with pytest.raises(InitializationError):
        recognizer.recognize(blank())


def test_initialize_is_idempotent(vision_config):
    recognizer = Recognizer(vision_config, reader=FakeReader())

    async def run():
        await asyncio.gather(recognizer.initialize(), recognizer.initialize())
        await recognizer.initialize()

    asyncio.run(run())
    assert recognizer.is_initialized


def test_terminate_requires_reinitialization(make_recognizer):
    recognizer, _ = make_recognizer()
    recognizer.terminate()
    with pytest.raises(InitializationError):
        recognizer.recognize(blank())


def test_filters_blank_and_low_confidence(make_recognizer):
    recognizer, _ = make_recognizer([[
        box("Allow", x=10, y=20, w=40, h=10, conf=0.93),
        box("   ", conf=0.99),
        box("Deny", conf=0.30),
    ]])
    results = recognizer.recognize(blank())
    assert [r.text for r in results] == ["Allow"]
    assert results[0].confidence == pytest.approx(93.0)
    assert (results[0].bounds.x, results[0].bounds.y) == (10, 20)
    assert (results[0].bounds.width, results[0].bounds.height) == (40, 10)
    assert recognizer.last_results == results


def test_per_call_threshold_overrides_global(make_recognizer):
    recognizer, _ = make_recognizer([[box("Deny", conf=0.30)]])
    assert recognizer.recognize(blank()) == []
    assert [r.text for r in recognizer.recognize(blank(), 20.0)] == ["Deny"]


def test_reader_error_becomes_recognition_error(make_recognizer):
    recognizer, _ = make_recognizer([RuntimeError("model crashed")])
    with pytest.raises(RecognitionError):
        recognizer.recognize(blank())


def test_accepts_plain_pil_image(make_recognizer):
    recognizer, reader = make_recognizer([[box("Keep")]])
    assert recognizer.recognize(Image.new("L", (8, 8)))[0].text == "Keep"
    assert reader.calls == 1
