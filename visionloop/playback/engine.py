"""
PlaybackEngine - data-driven replay of a recording over CSV rows.

One engine owns at most one session at a time: play() is rejected while a
session is active, and stop()/pause()/resume() act on that session only.

Row 0 is the setup row: it runs every step, and if it fails the session
ends, since later rows depend on its side effects. A failure on any later
row abandons the rest of that row and moves on to the next one.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from ..cancellation import CancelToken
from ..config import Config, ConditionalTimeoutPolicy, config as global_config
from ..errors import PlaybackInProgressError
from ..vision.poller import ConditionalPoller
from ..vision.recognizer import Recognizer, get_recognizer
from .csv_mapping import (
    build_column_index_map,
    build_label_to_columns,
    build_step_to_column,
    get_absolute_step_index,
    get_steps_for_row,
    resolve_step_value,
)
from .csv_source import CsvData, fields_from_headers
from .recording import Recording, Step
from .step_executor import StepExecutor, StepResult, falls_back_to_vision

logger = logging.getLogger(__name__)

PAUSE_CHECK_SECONDS = 0.1


@dataclass
class PlaybackState:
    is_playing: bool = False
    is_paused: bool = False
    current_row_index: int = 0
    current_step_index: int = 0
    total_rows: int = 0
    total_steps: int = 0
    error: Optional[str] = None


@dataclass
class PlaybackOptions:
    csv: Optional[CsvData] = None
    on_start: Optional[Callable[[], None]] = None
    on_step_start: Optional[Callable[[Step, int, int], None]] = None
    on_step_complete: Optional[Callable[[Step, int, int, bool], None]] = None
    on_row_complete: Optional[Callable[[int, bool], None]] = None
    on_complete: Optional[Callable[[bool, Optional[str]], None]] = None
    on_progress: Optional[Callable[[int, int], None]] = None
    # Single-pass click on any of these after every step
    auto_detection_terms: Optional[List[str]] = None


@dataclass
class RowResult:
    row_index: int
    success: bool
    steps: List[StepResult] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class PlaybackReport:
    status: str  # completed | stopped | failed
    rows: List[RowResult] = field(default_factory=list)
    total_rows: int = 0
    error: Optional[str] = None
    recording_name: str = ""
    started_at: float = field(default_factory=time.time)
    finished_at: float = 0.0

    @property
    def success(self) -> bool:
        return self.status == "completed"

    @property
    def completed_rows(self) -> int:
        return sum(1 for r in self.rows if r.success)


class PlaybackEngine:
    def __init__(
        self,
        backend,
        recognizer: Optional[Recognizer] = None,
        config: Optional[Config] = None,
        poller: Optional[ConditionalPoller] = None,
        timeout_policy: Optional[ConditionalTimeoutPolicy] = None,
    ):
        self.backend = backend
        self.config = config or global_config
        self.recognizer = recognizer or get_recognizer(self.config.vision)
        self.poller = poller or ConditionalPoller(
            backend, self.recognizer, self.config.vision, screenshot_dir=self.config.screenshot_dir,
        )
        self.executor = StepExecutor(backend, self.poller, self.config, timeout_policy)
        self.state = PlaybackState()
        self._token: Optional[CancelToken] = None

    def get_state(self) -> PlaybackState:
        return PlaybackState(**vars(self.state))

    @property
    def is_playing(self) -> bool:
        return self._token is not None

    def stop(self):
        if self._token is not None:
            self._token.cancel("Playback stopped")
            logger.info("[PlaybackEngine] Playback stopped")
        self.state.is_paused = False

    def pause(self):
        """Soft pause: the current step finishes, the next one waits."""
        if self._token is not None:
            self.state.is_paused = True
            logger.info("[PlaybackEngine] Playback paused")

    def resume(self):
        if self.state.is_paused:
            self.state.is_paused = False
            logger.info("[PlaybackEngine] Playback resumed")

    async def _wait_if_paused(self, token: CancelToken):
        while self.state.is_paused and not token.cancelled:
            await token.sleep(PAUSE_CHECK_SECONDS)

    @staticmethod
    def _emit(callback: Optional[Callable], *args):
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception("[PlaybackEngine] Callback %s raised", getattr(callback, "__name__", callback))

    def _needs_vision(self, recording: Recording, options: PlaybackOptions) -> bool:
        if options.auto_detection_terms:
            return True
        supports_dom = self.backend.supports_dom
        return any(s.is_vision or falls_back_to_vision(s, supports_dom) for s in recording.steps)

    async def play(self, recording: Recording, options: Optional[PlaybackOptions] = None) -> PlaybackReport:
        """
        Run the recording once per CSV row (once with no data when no CSV
        is given).

        Raises:
            PlaybackInProgressError: a session is already active
            InitializationError: the recognizer could not be initialized
        """
        if self._token is not None:
            raise PlaybackInProgressError("Playback already in progress")
        token = CancelToken()
        self._token = token
        options = options or PlaybackOptions()

        csv = options.csv or CsvData()
        rows = csv.rows if csv.rows else [[]]
        steps = recording.steps
        per_row = [len(get_steps_for_row(steps, recording.loop_start_index, i)) for i in range(len(rows))]
        total_work = sum(per_row)

        self.state = PlaybackState(is_playing=True, total_rows=len(rows), total_steps=len(steps))
        report = PlaybackReport(status="completed", total_rows=len(rows), recording_name=recording.name)
        self._emit(options.on_start)

        try:
            if self._needs_vision(recording, options) and not self.recognizer.is_initialized:
                logger.info("[PlaybackEngine] Initializing recognizer...")
                await self.recognizer.initialize()

            fields = recording.parsed_fields or fields_from_headers(csv.headers)
            step_to_column = build_step_to_column(steps, build_label_to_columns(fields))
            column_index_map = build_column_index_map(csv.headers)

            done = 0
            for row_index, row in enumerate(rows):
                if token.cancelled:
                    break
                self.state.current_row_index = row_index
                row_steps = get_steps_for_row(steps, recording.loop_start_index, row_index)
                logger.info(
                    "[PlaybackEngine] Row %d/%d: %d steps", row_index + 1, len(rows), len(row_steps),
                )

                row_result = RowResult(row_index=row_index, success=True)
                for relative_index, step in enumerate(row_steps):
                    await self._wait_if_paused(token)
                    if token.cancelled:
                        break
                    step_index = get_absolute_step_index(relative_index, recording.loop_start_index, row_index)
                    self.state.current_step_index = step_index

                    substitution = resolve_step_value(step, step_index, row, step_to_column, column_index_map)
                    concrete = substitution.step
                    self._emit(options.on_step_start, concrete, step_index, row_index)

                    result = await self.executor.execute(
                        concrete, step_index, row_index, token,
                        global_delay_ms=recording.global_delay_ms,
                        row=row,
                        column_index_map=column_index_map,
                        conditional_defaults=recording.conditional_defaults,
                        auto_detection_terms=options.auto_detection_terms,
                    )
                    result.value_source = substitution.source
                    row_result.steps.append(result)
                    done += 1
                    self._emit(options.on_step_complete, concrete, step_index, row_index, result.success)
                    self._emit(options.on_progress, done, total_work)

                    if result.cancelled:
                        row_result.success = False
                        row_result.error = result.error
                        break
                    if not result.success:
                        row_result.success = False
                        row_result.error = f"Step {step_index + 1} failed: {result.error}"
                        self.state.error = f"Row {row_index + 1}: {row_result.error}"
                        logger.error("[PlaybackEngine] %s", self.state.error)
                        break

                report.rows.append(row_result)
                self._emit(options.on_row_complete, row_index, row_result.success)

                if token.cancelled:
                    break
                if not row_result.success and row_index == 0:
                    logger.error("[PlaybackEngine] Setup row failed - aborting session")
                    report.status = "failed"
                    break

            if token.cancelled:
                report.status = "stopped"
                report.error = token.reason
            elif report.status != "failed" and any(not r.success for r in report.rows):
                report.status = "failed"
            if report.status == "failed":
                report.error = self.state.error

            self._emit(options.on_complete, report.success, report.error)
            return report

        except Exception as e:
            self.state.error = str(e)
            report.status = "failed"
            report.error = str(e)
            self._emit(options.on_complete, False, str(e))
            raise
        finally:
            report.finished_at = time.time()
            self.poller.cancel("playback ended")
            self.state.is_playing = False
            self.state.is_paused = False
            self._token = None


async def run_with_kill_switch(engine: PlaybackEngine, recording: Recording, options: PlaybackOptions) -> PlaybackReport:
    """
    Play with global hotkeys attached: stop and pause/resume. Hotkey
    callbacks arrive on the listener thread and are handed to the loop.
    """
    from ..utils.overlay import KillSwitch

    loop = asyncio.get_running_loop()

    def _toggle_pause():
        if engine.state.is_paused:
            engine.resume()
        else:
            engine.pause()

    switch = KillSwitch(
        on_kill=lambda: loop.call_soon_threadsafe(engine.stop),
        on_pause=lambda: loop.call_soon_threadsafe(_toggle_pause),
    )
    switch.start()
    try:
        return await engine.play(recording, options)
    finally:
        switch.stop()
