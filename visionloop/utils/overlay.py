"""
Global hotkeys for an unattended playback: kill switch and pause toggle.
Callbacks fire on the pynput listener thread.
"""
import logging
import sys
from typing import Callable, Optional

from pynput import keyboard

logger = logging.getLogger(__name__)

_MOD = "<cmd>" if sys.platform == "darwin" else "<ctrl>"
KILL_HOTKEY = f"{_MOD}+<shift>+<esc>"
PAUSE_HOTKEY = f"{_MOD}+<shift>+p"


class KillSwitch:
    """Global hotkey listener for stop and pause/resume."""

    def __init__(self, on_kill: Callable, on_pause: Optional[Callable] = None):
        self.on_kill = on_kill
        self.on_pause = on_pause
        self._listener: Optional[keyboard.GlobalHotKeys] = None

    def _hotkeys(self):
        def on_kill():
            logger.warning("[KillSwitch] KILL SWITCH (%s)", KILL_HOTKEY)
            self.on_kill()

        hotkeys = {KILL_HOTKEY: on_kill}
        if self.on_pause is not None:
            def on_pause():
                logger.info("[KillSwitch] Pause toggled (%s)", PAUSE_HOTKEY)
                self.on_pause()
            hotkeys[PAUSE_HOTKEY] = on_pause
        return hotkeys

    def start(self):
        try:
            self._listener = keyboard.GlobalHotKeys(self._hotkeys())
            self._listener.start()
            logger.info("[KillSwitch] Listening for %s", ", ".join(self._hotkeys()))
        except Exception as e:
            # No display / no input permission: playback still runs, just without hotkeys
            logger.warning("[KillSwitch] Could not start hotkey listener: %s", e)
            self._listener = None

    def stop(self):
        if self._listener:
            self._listener.stop()
            self._listener = None

    @property
    def is_running(self) -> bool:
        return self._listener is not None
