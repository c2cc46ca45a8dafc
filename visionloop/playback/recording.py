"""
Recording value objects as supplied by the recorder.

Loading accepts both snake_case keys and the camelCase keys of a recorder
export. Nothing here writes recordings back.
"""
import json
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..config import DEFAULT_SEARCH_TERMS, DEFAULT_TIMEOUT_SECONDS
from ..vision.types import ConditionalConfig

RECORDED_VIA = ("dom", "vision", "keyboard")


def _get(data: Dict[str, Any], snake: str, camel: str, default=None):
    if snake in data:
        return data[snake]
    return data.get(camel, default)


@dataclass
class StepCoordinates:
    x: float
    y: float
    width: float = 0.0
    height: float = 0.0

    @property
    def center(self):
        return (int(round(self.x + self.width / 2)), int(round(self.y + self.height / 2)))


@dataclass
class Step:
    label: str = ""
    event: str = "click"  # open | click | input | dropdown | keypress | conditional-click
    value: str = ""
    recorded_via: str = "dom"
    coordinates: Optional[StepCoordinates] = None
    delay_seconds: Optional[float] = None
    conditional_config: Optional[ConditionalConfig] = None
    selector: Optional[str] = None
    xpath: Optional[str] = None
    url: Optional[str] = None
    ocr_text: Optional[str] = None
    modifiers: List[str] = field(default_factory=list)

    @property
    def is_vision(self) -> bool:
        return self.recorded_via == "vision" or self.event == "conditional-click"

    def with_value(self, value: str) -> "Step":
        return replace(self, value=value)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Step":
        coords = data.get("coordinates")
        conditional = _get(data, "conditional_config", "conditionalConfig")
        recorded_via = _get(data, "recorded_via", "recordedVia", "dom") or "dom"
        if recorded_via not in RECORDED_VIA:
            raise ValueError(f"Unknown recordedVia: {recorded_via!r}")
        value = data.get("value")
        modifiers = data.get("modifiers") or []
        if isinstance(modifiers, dict):
            modifiers = [k for k, v in modifiers.items() if v]
        return cls(
            label=data.get("label") or "",
            event=data.get("event") or "click",
            value="" if value is None else str(value),
            recorded_via=recorded_via,
            coordinates=StepCoordinates(
                x=coords["x"], y=coords["y"],
                width=coords.get("width", 0), height=coords.get("height", 0),
            ) if coords else None,
            delay_seconds=_get(data, "delay_seconds", "delaySeconds"),
            conditional_config=ConditionalConfig.from_dict(conditional) if conditional else None,
            selector=data.get("selector"),
            xpath=data.get("xpath"),
            url=data.get("url"),
            ocr_text=_get(data, "ocr_text", "ocrText"),
            modifiers=list(modifiers),
        )


@dataclass
class ParsedField:
    """One CSV column and the step label it feeds."""
    column_name: str
    column_index: int
    target_label: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ParsedField":
        return cls(
            column_name=_get(data, "column_name", "columnName", ""),
            column_index=int(_get(data, "column_index", "columnIndex", 0)),
            target_label=_get(data, "target_label", "targetLabel", "") or "",
        )


@dataclass
class RecordingConditionalDefaults:
    search_terms: List[str] = field(default_factory=lambda: list(DEFAULT_SEARCH_TERMS))
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    confidence_threshold: Optional[float] = None


@dataclass
class Recording:
    """
    Row 0 always runs every step. Later rows run steps[loop_start_index:],
    or nothing at all when loop_start_index is negative.
    """
    steps: List[Step] = field(default_factory=list)
    loop_start_index: int = 0
    global_delay_ms: float = 0
    conditional_defaults: RecordingConditionalDefaults = field(default_factory=RecordingConditionalDefaults)
    parsed_fields: List[ParsedField] = field(default_factory=list)
    name: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Recording":
        defaults = _get(data, "conditional_defaults", "conditionalDefaults") or {}
        return cls(
            steps=[Step.from_dict(s) for s in data.get("steps", [])],
            loop_start_index=int(_get(data, "loop_start_index", "loopStartIndex", 0)),
            global_delay_ms=float(_get(data, "global_delay_ms", "globalDelayMs", 0) or 0),
            conditional_defaults=RecordingConditionalDefaults(
                search_terms=list(_get(defaults, "search_terms", "searchTerms") or DEFAULT_SEARCH_TERMS),
                timeout_seconds=_get(defaults, "timeout_seconds", "timeoutSeconds", DEFAULT_TIMEOUT_SECONDS),
                confidence_threshold=_get(defaults, "confidence_threshold", "confidenceThreshold"),
            ),
            parsed_fields=[ParsedField.from_dict(f) for f in _get(data, "parsed_fields", "parsedFields") or []],
            name=data.get("name") or "",
        )


def load_recording(path: Path) -> Recording:
    with open(path, "r", encoding="utf-8") as f:
        return Recording.from_dict(json.load(f))
