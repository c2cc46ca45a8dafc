"""
Step Executor - run one recorded step against an execution backend.

Routing: steps recorded via vision and every conditional-click go through
OCR and coordinates; everything else goes through the DOM operations of the
backend (falling back to vision when the backend has no DOM and the step
carries coordinates or OCR text).

Per-step delays run before the step, the global delay after it. All
waiting goes through the session's CancelToken.
"""
import logging
import time
from dataclasses import dataclass, replace
from typing import Dict, List, Optional

from ..cancellation import CancelToken
from ..config import Config, ConditionalTimeoutPolicy, config as global_config
from ..errors import ExecutionFailure
from ..vision.poller import ConditionalPoller, PollState
from ..vision.types import ConditionalClickResult, ConditionalConfig
from .csv_mapping import substitute_search_terms
from .recording import RecordingConditionalDefaults, Step

logger = logging.getLogger(__name__)


def get_execution_method(step: Step) -> str:
    """'vision' for vision-recorded steps and conditional clicks, else 'dom'."""
    if step.recorded_via == "vision":
        return "vision"
    if step.event == "conditional-click":
        return "vision"
    return "dom"


def can_fallback_to_vision(step: Step) -> bool:
    return step.coordinates is not None or bool(step.ocr_text)


def falls_back_to_vision(step: Step, supports_dom: bool) -> bool:
    """A DOM step replayed on a backend without a DOM, located by coordinates or OCR."""
    return (
        not supports_dom
        and get_execution_method(step) == "dom"
        and step.event in ("click", "input", "dropdown")
        and can_fallback_to_vision(step)
    )


@dataclass
class StepResult:
    step_index: int
    row_index: int
    success: bool
    method: str = "dom"
    error: Optional[str] = None
    skipped: bool = False
    cancelled: bool = False
    duration: float = 0.0  # milliseconds
    value_source: str = "recorded"
    conditional_result: Optional[ConditionalClickResult] = None


class StepExecutor:
    def __init__(
        self,
        backend,
        poller: ConditionalPoller,
        config: Optional[Config] = None,
        timeout_policy: Optional[ConditionalTimeoutPolicy] = None,
    ):
        self.backend = backend
        self.poller = poller
        self.config = config or global_config
        self.timeout_policy = timeout_policy or self.config.conditional_timeout_policy

    async def execute(
        self,
        step: Step,
        step_index: int,
        row_index: int,
        token: CancelToken,
        global_delay_ms: float = 0,
        row: Optional[List[str]] = None,
        column_index_map: Optional[Dict[str, int]] = None,
        conditional_defaults: Optional[RecordingConditionalDefaults] = None,
        auto_detection_terms: Optional[List[str]] = None,
    ) -> StepResult:
        """
        Execute one step. Primitive failures are reported in the result;
        InitializationError propagates.
        """
        started = time.perf_counter()
        method = get_execution_method(step)
        result = StepResult(step_index=step_index, row_index=row_index, success=False, method=method)

        def _finish(r: StepResult) -> StepResult:
            r.duration = (time.perf_counter() - started) * 1000
            return r

        def _stopped(r: StepResult) -> StepResult:
            r.cancelled = True
            r.error = token.reason or "Playback stopped"
            return _finish(r)

        if token.cancelled:
            return _stopped(result)

        if step.delay_seconds and step.delay_seconds > 0:
            logger.info("[StepExecutor] Waiting %ss before step %d", step.delay_seconds, step_index)
            if not await token.sleep(float(step.delay_seconds)):
                return _stopped(result)

        try:
            if step.event == "conditional-click":
                conditional = await self._execute_conditional(step, token, row, column_index_map, conditional_defaults)
                result.conditional_result = conditional
                if conditional.state == PollState.CANCELLED.value:
                    return _stopped(result)
                if conditional.buttons_clicked == 0 and conditional.timed_out:
                    reason = f"No conditional target appeared ({conditional.state})"
                    if self.timeout_policy == ConditionalTimeoutPolicy.SKIP_STEP:
                        logger.warning("[StepExecutor] %s - skipping step %d", reason, step_index)
                        result.skipped = True
                    else:
                        raise ExecutionFailure(reason, step_index, row_index)
            elif method == "vision":
                await self._execute_vision(step, step_index, row_index, token)
            elif falls_back_to_vision(step, self.backend.supports_dom):
                logger.info("[StepExecutor] Backend has no DOM - step %d falls back to vision", step_index)
                result.method = "vision"
                await self._execute_vision(step, step_index, row_index, token)
            else:
                await self._execute_dom(step, step_index, row_index, token)
        except ExecutionFailure as e:
            e.step_index = step_index if e.step_index is None else e.step_index
            e.row_index = row_index if e.row_index is None else e.row_index
            logger.error("[StepExecutor] Step %d failed: %s", step_index, e)
            result.error = str(e)
            return _finish(result)

        if token.cancelled:
            return _stopped(result)
        result.success = True

        if auto_detection_terms:
            target = await self.poller.click_once(auto_detection_terms)
            if target is not None:
                logger.info("[StepExecutor] Auto-detection clicked %r after step %d", target.text, step_index)

        if global_delay_ms and global_delay_ms > 0:
            if not await token.sleep(global_delay_ms / 1000.0):
                return _stopped(result)

        return _finish(result)

    # ------------------------------------------------------------------
    # Conditional
    # ------------------------------------------------------------------

    async def _execute_conditional(
        self,
        step: Step,
        token: CancelToken,
        row: Optional[List[str]],
        column_index_map: Optional[Dict[str, int]],
        defaults: Optional[RecordingConditionalDefaults],
    ) -> ConditionalClickResult:
        if step.conditional_config is not None:
            conditional = step.conditional_config
        else:
            defaults = defaults or RecordingConditionalDefaults()
            conditional = ConditionalConfig(
                search_terms=list(defaults.search_terms),
                timeout_seconds=defaults.timeout_seconds,
                confidence_threshold=defaults.confidence_threshold,
            )
        if conditional.confidence_threshold is None and defaults is not None:
            conditional = replace(conditional, confidence_threshold=defaults.confidence_threshold)
        if row and column_index_map:
            conditional = replace(
                conditional,
                search_terms=substitute_search_terms(conditional.search_terms, row, column_index_map),
            )
        return await self.poller.wait_and_click(conditional, cancel_token=token)

    # ------------------------------------------------------------------
    # Vision
    # ------------------------------------------------------------------

    async def _vision_target(self, step: Step, step_index: int, row_index: int):
        if step.coordinates is not None:
            return step.coordinates.center
        terms = [t for t in (step.ocr_text, step.label) if t]
        if not terms:
            raise ExecutionFailure("Vision step has neither coordinates nor text to look for", step_index, row_index)
        target = await self.poller.locate(terms)
        if target is None:
            raise ExecutionFailure(f"Text {terms[0]!r} not found on screen", step_index, row_index)
        return (target.x, target.y)

    async def _click(self, x: int, y: int, step_index: int, row_index: int):
        if not await self.backend.click_at(x, y):
            raise ExecutionFailure(f"Click at ({x}, {y}) failed", step_index, row_index)

    async def _type(self, text: str, step_index: int, row_index: int):
        if not await self.backend.type_text(text):
            raise ExecutionFailure("Typing failed", step_index, row_index)

    async def _key(self, step: Step, step_index: int, row_index: int):
        key = step.value or "Enter"
        if not await self.backend.send_key(key, step.modifiers):
            raise ExecutionFailure(f"Key {key!r} failed", step_index, row_index)

    async def _navigate(self, step: Step, step_index: int, row_index: int, token: CancelToken):
        url = step.url or step.value
        if not url:
            raise ExecutionFailure("Open step missing URL", step_index, row_index)
        if not await self.backend.navigate(url):
            raise ExecutionFailure(f"Navigation to {url} failed", step_index, row_index)
        logger.info("[StepExecutor] Navigated to %s, waiting %dms", url, self.config.navigation_delay_ms)
        await token.sleep(self.config.navigation_delay_ms / 1000.0)

    async def _execute_vision(self, step: Step, step_index: int, row_index: int, token: CancelToken):
        event = step.event
        if event == "open":
            await self._navigate(step, step_index, row_index, token)
        elif event == "keypress":
            await self._key(step, step_index, row_index)
        elif event == "click":
            x, y = await self._vision_target(step, step_index, row_index)
            await self._click(x, y, step_index, row_index)
        elif event == "input":
            x, y = await self._vision_target(step, step_index, row_index)
            await self._click(x, y, step_index, row_index)
            if not await token.sleep(self.config.input_focus_delay_ms / 1000.0):
                return
            await self._type(step.value, step_index, row_index)
        elif event == "dropdown":
            x, y = await self._vision_target(step, step_index, row_index)
            await self._click(x, y, step_index, row_index)
            if not await token.sleep(self.config.input_focus_delay_ms / 1000.0):
                return
            option = await self.poller.locate([step.value]) if step.value else None
            if option is None:
                raise ExecutionFailure(f"Dropdown option {step.value!r} not found on screen", step_index, row_index)
            await self._click(option.x, option.y, step_index, row_index)
        else:
            raise ExecutionFailure(f"Unknown event type: {event}", step_index, row_index)

    # ------------------------------------------------------------------
    # DOM
    # ------------------------------------------------------------------

    async def _execute_dom(self, step: Step, step_index: int, row_index: int, token: CancelToken):
        event = step.event
        if event == "open":
            await self._navigate(step, step_index, row_index, token)
        elif event == "keypress":
            await self._key(step, step_index, row_index)
        elif event == "input" and step.recorded_via == "keyboard" and not (step.selector or step.xpath):
            await self._type(step.value, step_index, row_index)
        elif event == "click":
            if not await self.backend.click_element(step.selector, step.xpath):
                raise ExecutionFailure(f"Click on {step.selector or step.xpath} failed", step_index, row_index)
        elif event == "input":
            if not await self.backend.fill_element(step.selector, step.xpath, step.value):
                raise ExecutionFailure(f"Input into {step.selector or step.xpath} failed", step_index, row_index)
        elif event == "dropdown":
            if not await self.backend.select_option(step.selector, step.xpath, step.value):
                raise ExecutionFailure(f"Select on {step.selector or step.xpath} failed", step_index, row_index)
        else:
            raise ExecutionFailure(f"Unknown event type: {event}", step_index, row_index)
