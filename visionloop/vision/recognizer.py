"""
Recognizer - turns a bitmap into (text, confidence, bounds) results.

Backed by EasyOCR. The reader is expensive to build (it loads detection and
recognition models), so one instance is created per process and reused by
every recognize() call. Using the recognizer before initialize() has
completed is an error, not a silent empty result.
"""
import asyncio
import logging
import time
from typing import Any, List, Optional, Union

import numpy as np
from PIL import Image

from ..config import VisionConfig, config as global_config
from ..errors import InitializationError, RecognitionError
from .types import Screenshot, TextBounds, TextResult

logger = logging.getLogger(__name__)


def _bounds_from_quad(quad) -> TextBounds:
    """EasyOCR boxes are 4 corner points; collapse to an axis-aligned box."""
    xs = [float(p[0]) for p in quad]
    ys = [float(p[1]) for p in quad]
    return TextBounds(x=min(xs), y=min(ys), width=max(xs) - min(xs), height=max(ys) - min(ys))


class Recognizer:
    """OCR over PIL images or Screenshots."""

    def __init__(self, vision_config: Optional[VisionConfig] = None, reader: Any = None):
        """
        Args:
            vision_config: Language and global confidence settings
            reader: Pre-built reader exposing readtext(ndarray). Built from
                easyocr on initialize() when omitted.
        """
        self.config = vision_config or global_config.vision
        self._reader = reader
        self._initialized = False
        self._init_lock: Optional[asyncio.Lock] = None
        self.last_screenshot: Optional[Screenshot] = None
        self.last_results: List[TextResult] = []
        self.last_duration_ms: float = 0.0

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self):
        """Build the OCR reader. Safe to call more than once."""
        if self._initialized:
            return
        if self._init_lock is None:
            self._init_lock = asyncio.Lock()
        async with self._init_lock:
            if self._initialized:
                return
            if self._reader is None:
                self._reader = await asyncio.to_thread(self._build_reader)
            self._initialized = True
            logger.info("[Recognizer] Initialized with language: %s", self.config.language)

    def _build_reader(self):
        try:
            import easyocr
            return easyocr.Reader([self.config.language], gpu=self.config.use_gpu)
        except Exception as e:
            raise InitializationError(f"EasyOCR init failed: {e}") from e

    def terminate(self):
        """Release the reader; recognize() fails until initialize() runs again."""
        self._reader = None
        self._initialized = False
        logger.info("[Recognizer] Terminated")

    def recognize(
        self,
        bitmap: Union[Screenshot, Image.Image],
        min_confidence: Optional[float] = None,
    ) -> List[TextResult]:
        """
        Extract all visible text.

        Args:
            bitmap: Screenshot or PIL image
            min_confidence: Per-call threshold (0-100). Falls back to the
                global VisionConfig threshold when None.

        Returns:
            TextResults in reader order, empty text and low confidence dropped
        """
        if not self._initialized or self._reader is None:
            raise InitializationError("Recognizer used before initialize()")

        if isinstance(bitmap, Screenshot):
            self.last_screenshot = bitmap
            image = bitmap.data
        else:
            image = bitmap
        threshold = self.config.confidence_threshold if min_confidence is None else min_confidence

        start = time.perf_counter()
        try:
            raw = self._reader.readtext(np.array(image.convert("RGB")))
        except Exception as e:
            raise RecognitionError(f"OCR error: {e}") from e
        self.last_duration_ms = (time.perf_counter() - start) * 1000

        results = []
        for quad, text, conf in raw:
            text = (text or "").strip()
            if not text:
                continue
            confidence = float(conf) * 100.0
            if confidence < threshold:
                continue
            results.append(TextResult(text=text, confidence=confidence, bounds=_bounds_from_quad(quad)))

        self.last_results = results
        if self.config.debug_mode:
            logger.debug(
                "[Recognizer] %d results in %.0fms: %s",
                len(results), self.last_duration_ms,
                [(r.text, round(r.confidence)) for r in results],
            )
        return results


# Process-wide instance
_recognizer: Optional[Recognizer] = None


def get_recognizer(vision_config: Optional[VisionConfig] = None) -> Recognizer:
    """Return the shared recognizer (created uninitialized on first access)."""
    global _recognizer
    if _recognizer is None:
        _recognizer = Recognizer(vision_config)
    return _recognizer


async def initialize_recognizer(vision_config: Optional[VisionConfig] = None) -> Recognizer:
    recognizer = get_recognizer(vision_config)
    await recognizer.initialize()
    return recognizer


def set_recognizer(recognizer: Optional[Recognizer]):
    """Replace the shared recognizer (None resets it)."""
    global _recognizer
    _recognizer = recognizer
