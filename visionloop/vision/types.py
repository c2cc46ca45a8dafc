"""
Vision data types: OCR results, click targets and conditional polling config.
"""
import math
import time
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from PIL import Image

from ..config import DEFAULT_POLL_INTERVAL_MS, DEFAULT_SEARCH_TERMS, DEFAULT_TIMEOUT_SECONDS


@dataclass
class Screenshot:
    """One captured bitmap."""
    data: Image.Image
    width: int
    height: int
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def from_image(cls, image: Image.Image) -> "Screenshot":
        return cls(data=image, width=image.width, height=image.height)


@dataclass
class TextBounds:
    x: float
    y: float
    width: float
    height: float

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2

    @property
    def center_y(self) -> float:
        return self.y + self.height / 2


@dataclass
class TextResult:
    """Raw recognizer output for one text region."""
    text: str
    confidence: float  # 0-100
    bounds: TextBounds


@dataclass
class ClickTarget:
    """Center point of a matched TextResult."""
    text: str
    confidence: float
    x: int
    y: int

    @classmethod
    def from_result(cls, result: TextResult) -> "ClickTarget":
        return cls(
            text=result.text,
            confidence=result.confidence,
            x=int(round(result.bounds.center_x)),
            y=int(round(result.bounds.center_y)),
        )


def _usable_number(value: Any) -> Optional[float]:
    """Return value as a positive finite float, or None."""
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number) or number <= 0:
        return None
    return number


@dataclass
class ConditionalConfig:
    """
    Configuration for a conditional click: wait for any of `search_terms`
    to appear and click it, repeatedly, until the rolling timeout expires.
    """
    search_terms: List[str] = field(default_factory=lambda: list(DEFAULT_SEARCH_TERMS))
    timeout_seconds: Any = DEFAULT_TIMEOUT_SECONDS
    poll_interval_ms: Any = DEFAULT_POLL_INTERVAL_MS
    confidence_threshold: Optional[float] = None  # None = use global VisionConfig value
    success_text: Optional[str] = None

    def sanitized(self) -> "ConditionalConfig":
        """Copy with unusable timing values and an empty term list replaced by the defaults."""
        timeout = _usable_number(self.timeout_seconds)
        interval = _usable_number(self.poll_interval_ms)
        threshold = self.confidence_threshold
        if threshold is not None:
            try:
                threshold = float(threshold)
            except (TypeError, ValueError):
                threshold = None
            else:
                if math.isnan(threshold):
                    threshold = None
        terms = [t for t in (self.search_terms or []) if t and str(t).strip()]
        return replace(
            self,
            search_terms=terms or list(DEFAULT_SEARCH_TERMS),
            timeout_seconds=timeout if timeout is not None else DEFAULT_TIMEOUT_SECONDS,
            poll_interval_ms=interval if interval is not None else DEFAULT_POLL_INTERVAL_MS,
            confidence_threshold=threshold,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConditionalConfig":
        terms = data.get("search_terms", data.get("searchTerms"))
        return cls(
            search_terms=list(terms) if terms else list(DEFAULT_SEARCH_TERMS),
            timeout_seconds=data.get("timeout_seconds", data.get("timeoutSeconds", DEFAULT_TIMEOUT_SECONDS)),
            poll_interval_ms=data.get("poll_interval_ms", data.get("pollIntervalMs", DEFAULT_POLL_INTERVAL_MS)),
            confidence_threshold=data.get("confidence_threshold", data.get("confidenceThreshold")),
            success_text=data.get("success_text", data.get("successText")),
        )


@dataclass
class ConditionalClickResult:
    """Terminal summary of one poll session."""
    buttons_clicked: int = 0
    timed_out: bool = False
    duration: float = 0.0  # milliseconds
    clicked_texts: List[str] = field(default_factory=list)
    state: str = ""  # terminal PollState value
    iterations: int = 0
