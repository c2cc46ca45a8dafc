"""
Execution Backend - the surface steps are executed against.

Vision steps only need capture() and the three coordinate/keyboard
primitives. DOM steps additionally need selector-based operations, which
only a browser backend can provide.
"""
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Tuple

from ..vision.types import Screenshot

MODIFIER_ORDER = ("ctrl", "shift", "alt", "meta")

_MODIFIER_ALIASES = {
    "ctrl": "ctrl", "ctrlkey": "ctrl", "control": "ctrl",
    "shift": "shift", "shiftkey": "shift",
    "alt": "alt", "altkey": "alt", "option": "alt",
    "meta": "meta", "metakey": "meta", "cmd": "meta", "command": "meta", "win": "meta",
}


def normalize_modifiers(modifiers: Any) -> List[str]:
    """
    Accept {"ctrlKey": True, ...}, ["ctrl", "shift"] or None and return
    canonical names in MODIFIER_ORDER.
    """
    if not modifiers:
        return []
    if isinstance(modifiers, dict):
        names = [k for k, v in modifiers.items() if v]
    elif isinstance(modifiers, str):
        names = [modifiers]
    else:
        names = list(modifiers)
    found = {_MODIFIER_ALIASES.get(str(n).lower()) for n in names}
    return [m for m in MODIFIER_ORDER if m in found]


class ExecutionBackend(ABC):
    """Abstract interface for executing actions (browser or desktop)."""

    @abstractmethod
    async def capture(self) -> Screenshot:
        """Capture current screen state."""
        ...

    @abstractmethod
    async def click_at(self, x: int, y: int) -> bool:
        """Click at pixel coordinates."""
        ...

    @abstractmethod
    async def type_text(self, text: str) -> bool:
        """Type text into whatever has focus."""
        ...

    @abstractmethod
    async def send_key(self, key: str, modifiers: Optional[List[str]] = None) -> bool:
        """Press a key (e.g. Enter, Tab) with optional modifiers."""
        ...

    async def navigate(self, url: str) -> bool:
        return False

    async def click_element(self, selector: Optional[str], xpath: Optional[str]) -> bool:
        return False

    async def fill_element(self, selector: Optional[str], xpath: Optional[str], value: str) -> bool:
        return False

    async def select_option(self, selector: Optional[str], xpath: Optional[str], value: str) -> bool:
        return False

    @property
    def supports_dom(self) -> bool:
        return False

    def viewport_size(self) -> Tuple[int, int]:
        """Return (width, height) of the viewport/screen."""
        return (0, 0)

    async def close(self):
        pass
