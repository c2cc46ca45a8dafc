import json

import pytest

from visionloop.config import DEFAULT_SEARCH_TERMS
from visionloop.playback.recording import Recording, Step, load_recording


def test_step_from_camel_case_export():
    step = Step.from_dict({
        "label": "Allow dialog",
        "event": "conditional-click",
        "recordedVia": "vision",
        "delaySeconds": 2,
        "coordinates": {"x": 10, "y": 20, "width": 30, "height": 10},
        "conditionalConfig": {"searchTerms": ["Allow"], "timeoutSeconds": 60, "successText": "Done"},
        "modifiers": {"ctrl": True, "shift": False},
        "value": 42,
    })
    assert step.is_vision
    assert step.delay_seconds == 2
    assert step.coordinates.center == (25, 25)
    assert step.conditional_config.search_terms == ["Allow"]
    assert step.conditional_config.timeout_seconds == 60
    assert step.conditional_config.success_text == "Done"
    assert step.modifiers == ["ctrl"]
    assert step.value == "42"


def test_unknown_recorded_via_is_rejected():
    with pytest.raises(ValueError):
        Step.from_dict({"label": "x", "recordedVia": "telepathy"})


def test_recording_defaults():
    recording = Recording.from_dict({"steps": [{"label": "Name", "event": "input"}]})
    assert recording.loop_start_index == 0
    assert recording.global_delay_ms == 0
    assert recording.conditional_defaults.search_terms == DEFAULT_SEARCH_TERMS
    assert recording.steps[0].recorded_via == "dom"
    assert recording.steps[0].value == ""


def test_load_recording(tmp_path):
    path = tmp_path / "rec.json"
    path.write_text(json.dumps({
        "name": "signup",
        "loopStartIndex": -1,
        "globalDelayMs": 250,
        "conditionalDefaults": {"searchTerms": ["Continue"], "timeoutSeconds": 30},
        "parsedFields": [{"columnName": "Email", "columnIndex": 0, "targetLabel": "Email"}],
        "steps": [{"label": "Email", "event": "input", "selector": "#email"}],
    }), encoding="utf-8")

    recording = load_recording(path)
    assert recording.name == "signup"
    assert recording.loop_start_index == -1
    assert recording.global_delay_ms == 250
    assert recording.conditional_defaults.search_terms == ["Continue"]
    assert recording.parsed_fields[0].target_label == "Email"
    assert recording.steps[0].selector == "#email"
