"""
Cooperative cancellation shared by the poller and the playback engine.
"""
import asyncio
from typing import List


class CancelToken:
    """
    One-shot cancellation signal.

    Checked at the head of every loop iteration and before each suspension
    point. Sleeping through the token wakes up as soon as it is cancelled.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self._children: List["CancelToken"] = []
        self.reason = ""

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled"):
        if not self._event.is_set():
            self.reason = reason
            self._event.set()
        for child in self._children:
            child.cancel(reason)
        self._children.clear()

    def child(self) -> "CancelToken":
        """Token that is cancelled with this one but can also be cancelled alone."""
        token = CancelToken()
        if self.cancelled:
            token.cancel(self.reason)
        else:
            self._children.append(token)
        return token

    def release(self, child: "CancelToken"):
        if child in self._children:
            self._children.remove(child)

    async def sleep(self, seconds: float) -> bool:
        """
        Sleep for up to `seconds`.

        Returns:
            True if the full delay elapsed, False if cancelled first
        """
        if self.cancelled:
            return False
        if seconds <= 0:
            await asyncio.sleep(0)
            return not self.cancelled
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return True
        return False

    async def wait(self):
        await self._event.wait()
