"""
VisionLoop: OCR-driven conditional clicking and CSV-driven playback
"""
from .config import Config, config, VisionConfig, ConditionalTimeoutPolicy
from .errors import (
    VisionLoopError, InitializationError, RecognitionError, ExecutionFailure, PlaybackInProgressError,
)
from .cancellation import CancelToken
from .vision import (
    Recognizer, get_recognizer, initialize_recognizer,
    ConditionalPoller, ConditionalConfig, ConditionalClickResult, PollState,
    find_first, find_all, MatchOptions,
)
from .playback import PlaybackEngine, PlaybackOptions, PlaybackReport, Recording, load_recording, load_csv
from .history import RunHistoryDB

__version__ = "0.1.0"
__all__ = [
    # Config
    "Config", "config", "VisionConfig", "ConditionalTimeoutPolicy",
    # Errors
    "VisionLoopError", "InitializationError", "RecognitionError", "ExecutionFailure", "PlaybackInProgressError",
    "CancelToken",
    # Vision
    "Recognizer", "get_recognizer", "initialize_recognizer",
    "ConditionalPoller", "ConditionalConfig", "ConditionalClickResult", "PollState",
    "find_first", "find_all", "MatchOptions",
    # Playback
    "PlaybackEngine", "PlaybackOptions", "PlaybackReport", "Recording", "load_recording", "load_csv",
    # History
    "RunHistoryDB",
]
