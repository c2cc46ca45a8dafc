import asyncio

import pytest

from visionloop.errors import InitializationError, PlaybackInProgressError
from visionloop.playback.csv_source import CsvData
from visionloop.playback.engine import PlaybackEngine, PlaybackOptions
from visionloop.playback.recording import Recording, Step
from visionloop.vision.recognizer import Recognizer

from conftest import FakeBackend, FakeReader, box


@pytest.fixture
def make_engine(make_recognizer, make_poller, test_config):
    def _make(frames=None, recognizer=None, dom=True):
        backend = FakeBackend(dom=dom)
        if recognizer is None:
            recognizer, _ = make_recognizer(frames)
        poller = make_poller(backend, recognizer, max_iterations=2)
        return PlaybackEngine(backend, recognizer, test_config, poller=poller), backend
    return _make


def form_recording(loop_start_index=1):
    return Recording(
        name="signup",
        loop_start_index=loop_start_index,
        steps=[
            Step(label="Start", event="open", url="https://example.com"),
            Step(label="Name", event="input", selector="#name", value="recorded"),
            Step(label="Save", event="click", selector="#save"),
        ],
    )


def csv(*names):
    return CsvData(headers=["Name"], rows=[[n] for n in names])


def test_single_row_without_csv(make_engine):
    engine, backend = make_engine()
    report = asyncio.run(engine.play(form_recording()))
    assert report.status == "completed" and report.success
    assert report.total_rows == 1
    assert backend.dom_calls == [("fill", "#name", "recorded"), ("click", "#save", None)]


def test_rows_after_first_start_at_loop_index(make_engine):
    engine, backend = make_engine()
    report = asyncio.run(engine.play(form_recording(), PlaybackOptions(csv=csv("Ada", "Bob", "Cy"))))
    assert report.completed_rows == 3
    assert backend.navigations == ["https://example.com"]
    assert [v for op, _, v in backend.dom_calls if op == "fill"] == ["Ada", "Bob", "Cy"]
    assert [len(r.steps) for r in report.rows] == [3, 2, 2]
    assert report.rows[1].steps[0].step_index == 1
    assert report.rows[1].steps[0].value_source == "mapping"


def test_negative_loop_start_runs_later_rows_empty(make_engine):
    engine, backend = make_engine()
    report = asyncio.run(engine.play(form_recording(-1), PlaybackOptions(csv=csv("Ada", "Bob"))))
    assert [len(r.steps) for r in report.rows] == [3, 0]
    assert len(backend.dom_calls) == 2


def test_later_row_failure_does_not_stop_session(make_engine):
    engine, backend = make_engine()
    original = backend.fill_element

    async def fill(selector, xpath, value):
        await original(selector, xpath, value)
        return value != "Bob"

    backend.fill_element = fill
    rows_done = []
    report = asyncio.run(engine.play(
        form_recording(),
        PlaybackOptions(csv=csv("Ada", "Bob", "Cy"), on_row_complete=lambda i, ok: rows_done.append((i, ok))),
    ))
    assert rows_done == [(0, True), (1, False), (2, True)]
    assert report.status == "failed"
    assert report.completed_rows == 2
    # the Save step of row 1 was skipped
    assert [c for c in backend.dom_calls if c[0] == "click"] == [("click", "#save", None)] * 2


def test_first_row_failure_is_fatal(make_engine):
    engine, backend = make_engine()
    backend.dom_ok = False
    completed = []
    report = asyncio.run(engine.play(
        form_recording(),
        PlaybackOptions(csv=csv("Ada", "Bob"), on_complete=lambda ok, err: completed.append((ok, err))),
    ))
    assert report.status == "failed"
    assert len(report.rows) == 1
    assert completed == [(False, report.error)]
    assert "Row 1" in report.error


def test_callbacks_and_progress(make_engine):
    engine, _ = make_engine()
    events = []
    options = PlaybackOptions(
        csv=csv("Ada", "Bob"),
        on_start=lambda: events.append("start"),
        on_step_start=lambda step, i, row: events.append(("step", row, i, step.value)),
        on_step_complete=lambda step, i, row, ok: events.append(("done", row, i, ok)),
        on_complete=lambda ok, err: events.append(("complete", ok)),
    )
    progress = []
    options.on_progress = lambda done, total: progress.append((done, total))

    asyncio.run(engine.play(form_recording(), options))

    assert events[0] == "start"
    assert ("step", 1, 1, "Bob") in events
    assert events[-1] == ("complete", True)
    assert progress == [(1, 5), (2, 5), (3, 5), (4, 5), (5, 5)]


def test_callback_errors_do_not_break_playback(make_engine):
    engine, _ = make_engine()

    def boom(*args):
        raise RuntimeError("ui gone")

    report = asyncio.run(engine.play(form_recording(), PlaybackOptions(on_step_start=boom)))
    assert report.success


def test_play_is_single_flight(make_engine):
    engine, backend = make_engine()

    async def run():
        recording = Recording(steps=[Step(label="Wait", event="click", selector="#a", delay_seconds=0.2)])
        first = asyncio.create_task(engine.play(recording))
        await asyncio.sleep(0.02)
        assert engine.is_playing
        with pytest.raises(PlaybackInProgressError):
            await engine.play(recording)
        return await first

    report = asyncio.run(run())
    assert report.success
    assert not engine.is_playing


def test_stop_ends_session(make_engine):
    engine, backend = make_engine()
    recording = Recording(steps=[
        Step(label="A", event="click", selector="#a", delay_seconds=5),
        Step(label="B", event="click", selector="#b"),
    ])

    async def run():
        task = asyncio.create_task(engine.play(recording, PlaybackOptions(csv=csv("1", "2"))))
        await asyncio.sleep(0.02)
        engine.stop()
        return await task

    report = asyncio.run(run())
    assert report.status == "stopped"
    assert backend.dom_calls == []
    assert report.rows[0].steps[0].cancelled
    assert not engine.get_state().is_playing


def test_pause_holds_next_step_until_resume(make_engine):
    engine, backend = make_engine()
    recording = Recording(steps=[
        Step(label="A", event="click", selector="#a", delay_seconds=0.05),
        Step(label="B", event="click", selector="#b"),
    ])

    async def run():
        task = asyncio.create_task(engine.play(recording))
        await asyncio.sleep(0.01)
        engine.pause()
        await asyncio.sleep(0.3)
        calls_while_paused = list(backend.dom_calls)
        assert engine.get_state().is_paused
        engine.resume()
        return calls_while_paused, await task

    calls_while_paused, report = asyncio.run(run())
    # the in-flight step finishes, the next one waits
    assert calls_while_paused == [("click", "#a", None)]
    assert report.success
    assert backend.dom_calls == [("click", "#a", None), ("click", "#b", None)]


def test_vision_steps_initialize_recognizer(make_engine, vision_config):
    recognizer = Recognizer(vision_config, reader=FakeReader([[]]))
    engine, backend = make_engine(recognizer=recognizer)
    recording = Recording(steps=[Step(event="click", recorded_via="vision", ocr_text="Go", label="Go")])
    report = asyncio.run(engine.play(recording))
    assert recognizer.is_initialized
    assert report.status == "failed"  # "Go" never appears


def test_dom_steps_without_dom_initialize_recognizer_for_fallback(make_engine, vision_config):
    recognizer = Recognizer(vision_config, reader=FakeReader([[box("Submit", x=0, y=0, w=40, h=20)]]))
    engine, backend = make_engine(recognizer=recognizer, dom=False)
    recording = Recording(steps=[Step(label="Submit", event="click", selector="#s", ocr_text="Submit")])

    report = asyncio.run(engine.play(recording))

    assert report.success
    assert recognizer.is_initialized
    assert backend.clicks == [(20, 10)]
    assert backend.dom_calls == []


def test_initialization_error_propagates(make_engine, vision_config):
    recognizer = Recognizer(vision_config)

    def broken():
        raise InitializationError("no OCR model")

    recognizer._build_reader = broken
    engine, _ = make_engine(recognizer=recognizer)
    completed = []
    recording = Recording(steps=[Step(event="conditional-click")])

    with pytest.raises(InitializationError):
        asyncio.run(engine.play(recording, PlaybackOptions(on_complete=lambda ok, err: completed.append((ok, err)))))

    assert completed == [(False, "no OCR model")]
    assert not engine.is_playing
