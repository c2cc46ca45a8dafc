"""
VisionLoop Configuration
"""
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Tuple


# Conditional polling defaults (used whenever a configured value is unusable)
DEFAULT_TIMEOUT_SECONDS = 420.0
DEFAULT_POLL_INTERVAL_MS = 500.0
DEFAULT_SEARCH_TERMS = ["Allow", "Keep"]

# Hard ceiling on poll ticks, independent of any timestamp arithmetic
MAX_POLL_ITERATIONS = 10000

# Pause after a successful click so the UI can react before the next capture
CLICK_SETTLE_MS = 500

# Locator
DEDUPE_RADIUS_PX = 10
DEFAULT_MAX_RESULTS = 10


class ConditionalTimeoutPolicy(str, Enum):
    """What a conditional step that timed out without clicking means for its row."""
    FAIL_ROW = "fail_row"
    SKIP_STEP = "skip_step"


@dataclass
class VisionConfig:
    language: str = "en"  # easyocr language code
    confidence_threshold: float = 60.0  # 0-100
    screenshot_quality: int = 80  # JPEG quality for debug screenshots
    debug_mode: bool = False
    use_gpu: bool = False


@dataclass
class Config:
    # Paths
    project_root: Path = field(default_factory=lambda: Path(__file__).parent.parent)
    data_dir: Path = field(default_factory=lambda: Path(__file__).parent.parent / "data")
    db_path: Path = field(default_factory=lambda: Path(__file__).parent.parent / "data" / "runs.db")
    screenshot_dir: Path = field(default_factory=lambda: Path(__file__).parent.parent / "data" / "screenshots")

    # Vision
    vision: VisionConfig = field(default_factory=VisionConfig)

    # Playback
    conditional_timeout_policy: ConditionalTimeoutPolicy = ConditionalTimeoutPolicy.FAIL_ROW
    navigation_delay_ms: int = 5000  # after "open" steps
    input_focus_delay_ms: int = 100  # between focus click and typing

    # Screen
    monitor: int = 1  # mss monitor index (0 = all monitors, 1 = primary)

    # Browser
    browser_headless: bool = False
    browser_viewport: Tuple[int, int] = (1280, 800)

    # Safety
    safe_mode: bool = False  # Log actions instead of executing

    def ensure_dirs(self):
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.screenshot_dir.mkdir(parents=True, exist_ok=True)


# Global config instance
config = Config()
