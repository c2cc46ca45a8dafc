"""Vision package: OCR, text location and conditional polling"""
from .types import Screenshot, TextBounds, TextResult, ClickTarget, ConditionalConfig, ConditionalClickResult
from .recognizer import Recognizer, get_recognizer, initialize_recognizer, set_recognizer
from .locator import MatchOptions, find_first, find_all, text_matches
from .poller import ConditionalPoller, PollState

__all__ = [
    "Screenshot", "TextBounds", "TextResult", "ClickTarget", "ConditionalConfig", "ConditionalClickResult",
    "Recognizer", "get_recognizer", "initialize_recognizer", "set_recognizer",
    "MatchOptions", "find_first", "find_all", "text_matches",
    "ConditionalPoller", "PollState",
]
