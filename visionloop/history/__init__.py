"""Playback run history."""
from .database import RunHistoryDB, RunRecord

__all__ = ["RunHistoryDB", "RunRecord"]
