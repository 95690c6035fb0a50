import asyncio
from typing import Callable, Optional


class SummaryTimer:
    """Cancellable delay before the end-of-session summary is shown.

    Re-arming cancels the previous timer, so at most one is pending.
    """

    def __init__(self, delay_seconds: float) -> None:
        self.delay_seconds: float = delay_seconds
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self, callback: Callable[[], None]) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay_seconds, self._fire, callback)

    def _fire(self, callback: Callable[[], None]) -> None:
        self._handle = None
        callback()

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
