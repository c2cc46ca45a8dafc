"""
Conditional Poller - wait for text to appear on screen and click it.

State machine:

    IDLE -> POLLING -> CLICKED -> POLLING ...
                    -> SUCCEEDED          (success text seen)
                    -> TIMED_OUT          (rolling timeout)
                    -> CANCELLED
                    -> MAX_ITER_REACHED   (hard tick ceiling)

Every tick checks, in order: the iteration cap, cancellation, and the
rolling timeout, before doing any work. The timeout clock restarts on every
successful click, so a session that keeps finding buttons keeps running.
"""
import asyncio
import logging
import time
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

from ..cancellation import CancelToken
from ..config import CLICK_SETTLE_MS, MAX_POLL_ITERATIONS, VisionConfig, config as global_config
from ..errors import RecognitionError
from .locator import MatchOptions, find_first
from .recognizer import Recognizer, get_recognizer
from .types import ClickTarget, ConditionalClickResult, ConditionalConfig, Screenshot, TextResult

logger = logging.getLogger(__name__)


class PollState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    CLICKED = "clicked"
    SUCCEEDED = "succeeded"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"
    MAX_ITER_REACHED = "max_iter_reached"


class ConditionalPoller:
    """
    Drives capture -> recognize -> locate -> click against one execution
    backend. At most one poll is active per poller: starting a new one
    cancels the previous one first.
    """

    def __init__(
        self,
        backend,
        recognizer: Optional[Recognizer] = None,
        vision_config: Optional[VisionConfig] = None,
        max_iterations: int = MAX_POLL_ITERATIONS,
        click_settle_ms: float = CLICK_SETTLE_MS,
        clock: Callable[[], float] = time.monotonic,
        screenshot_dir: Optional[Path] = None,
    ):
        self.backend = backend
        self.recognizer = recognizer or get_recognizer()
        self.vision_config = vision_config or self.recognizer.config
        self.max_iterations = max_iterations
        self.click_settle_ms = click_settle_ms
        self.clock = clock
        self.screenshot_dir = screenshot_dir or global_config.screenshot_dir
        self.state = PollState.IDLE
        self._active: Optional[CancelToken] = None

    @property
    def is_polling(self) -> bool:
        return self._active is not None

    def cancel(self, reason: str = "poll cancelled"):
        if self._active is not None:
            self._active.cancel(reason)

    def _effective_threshold(self, override: Optional[float]) -> float:
        if override is not None:
            return float(override)
        return self.vision_config.confidence_threshold

    async def _scan(self, threshold: float) -> List[TextResult]:
        """One capture + recognition pass. Recognition failures yield no results."""
        try:
            screenshot = await self.backend.capture()
        except Exception as e:
            logger.warning("[Poller] Capture failed, treating as empty tick: %s", e)
            return []
        if self.vision_config.debug_mode:
            await asyncio.to_thread(self._save_debug_screenshot, screenshot)
        try:
            return await asyncio.to_thread(self.recognizer.recognize, screenshot, threshold)
        except RecognitionError as e:
            logger.warning("[Poller] %s - no matches this tick", e)
            return []

    def _save_debug_screenshot(self, screenshot: Screenshot):
        try:
            self.screenshot_dir.mkdir(parents=True, exist_ok=True)
            path = self.screenshot_dir / f"poll_{int(screenshot.timestamp * 1000)}.jpg"
            screenshot.data.convert("RGB").save(path, quality=self.vision_config.screenshot_quality)
        except OSError as e:
            logger.debug("[Poller] Could not save debug screenshot: %s", e)

    async def locate(
        self,
        search_terms: List[str],
        confidence_threshold: Optional[float] = None,
    ) -> Optional[ClickTarget]:
        """Single pass: find the first visible term without clicking."""
        threshold = self._effective_threshold(confidence_threshold)
        results = await self._scan(threshold)
        return find_first(search_terms, results, MatchOptions(confidence_threshold=threshold))

    async def click_once(
        self,
        search_terms: List[str],
        confidence_threshold: Optional[float] = None,
    ) -> Optional[ClickTarget]:
        """Single pass: click the first visible term, if any."""
        target = await self.locate(search_terms, confidence_threshold)
        if target is None:
            return None
        if await self.backend.click_at(target.x, target.y):
            logger.info("[Poller] Clicked %r at (%d, %d)", target.text, target.x, target.y)
            return target
        logger.warning("[Poller] Click on %r at (%d, %d) failed", target.text, target.x, target.y)
        return None

    async def wait_and_click(
        self,
        conditional: ConditionalConfig,
        cancel_token: Optional[CancelToken] = None,
    ) -> ConditionalClickResult:
        """
        Poll until the rolling timeout, cancellation, success text, or the
        iteration cap ends the session.

        Args:
            conditional: Search terms and timing. Unusable timing values are
                replaced by the defaults.
            cancel_token: Session-level token (e.g. the playback session's).

        Returns:
            ConditionalClickResult; timeouts are reported, never raised
        """
        cfg = conditional.sanitized()

        if self._active is not None:
            logger.info("[Poller] New poll requested - cancelling the active one")
            self._active.cancel("superseded by a new poll")
        token = cancel_token.child() if cancel_token is not None else CancelToken()
        self._active = token

        threshold = self._effective_threshold(cfg.confidence_threshold)
        options = MatchOptions(confidence_threshold=threshold)
        timeout_s = float(cfg.timeout_seconds)
        interval_s = float(cfg.poll_interval_ms) / 1000.0

        result = ConditionalClickResult()
        start = self.clock()
        last_progress = start
        self.state = PollState.POLLING
        logger.info(
            "[Poller] Waiting for %s (timeout %.0fs rolling, every %.0fms, confidence >= %.0f)",
            cfg.search_terms, timeout_s, cfg.poll_interval_ms, threshold,
        )

        try:
            while True:
                if result.iterations >= self.max_iterations:
                    self.state = PollState.MAX_ITER_REACHED
                    result.timed_out = True
                    logger.warning(
                        "[Poller] Iteration cap (%d) reached - stopping (not a timeout)",
                        self.max_iterations,
                    )
                    break
                if token.cancelled:
                    self.state = PollState.CANCELLED
                    result.timed_out = False
                    logger.info("[Poller] Cancelled: %s", token.reason)
                    break
                if self.clock() - last_progress >= timeout_s:
                    self.state = PollState.TIMED_OUT
                    result.timed_out = True
                    logger.info(
                        "[Poller] Timed out after %.1fs without a new click (%d clicked)",
                        self.clock() - last_progress, result.buttons_clicked,
                    )
                    break

                result.iterations += 1
                self.state = PollState.POLLING
                results = await self._scan(threshold)
                logger.debug("[Poller] Tick %d: %d text regions", result.iterations, len(results))
                if token.cancelled:
                    continue

                target = find_first(cfg.search_terms, results, options)
                if target is not None:
                    if await self.backend.click_at(target.x, target.y):
                        self.state = PollState.CLICKED
                        result.buttons_clicked += 1
                        result.clicked_texts.append(target.text)
                        last_progress = self.clock()
                        logger.info(
                            "[Poller] Clicked %r at (%d, %d) [%d total]",
                            target.text, target.x, target.y, result.buttons_clicked,
                        )
                        if self.click_settle_ms > 0:
                            await token.sleep(self.click_settle_ms / 1000.0)
                            if token.cancelled:
                                continue
                    else:
                        logger.warning("[Poller] Click on %r failed", target.text)

                if cfg.success_text and find_first([cfg.success_text], results, options):
                    self.state = PollState.SUCCEEDED
                    result.timed_out = False
                    logger.info("[Poller] Success text %r visible - done", cfg.success_text)
                    break

                await token.sleep(interval_s)
        finally:
            if cancel_token is not None:
                cancel_token.release(token)
            if self._active is token:
                self._active = None

        result.duration = (self.clock() - start) * 1000
        result.state = self.state.value
        return result
