import asyncio
import logging
from typing import Awaitable, Callable, Generic, Optional, Set, TypeVar

T = TypeVar("T")


class PrefetchSlot(Generic[T]):
    """Single-item look-ahead cache.

    Every fetch takes a new token; a result is accepted only while its token
    is still the current one, so a fetch started earlier but completing later
    never overwrites a newer one.
    """

    def __init__(self, name: str = "prefetch") -> None:
        self.name: str = name
        self._token: int = 0
        self._value: Optional[T] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def token(self) -> int:
        return self._token

    @property
    def is_fetching(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def begin_fetch(self, producer: Callable[[], Awaitable[Optional[T]]]) -> asyncio.Task:
        """Start filling the slot in the background

        Args:
            producer (Callable[[], Awaitable[Optional[T]]]): Fetches one unit of work

        Returns:
            asyncio.Task: The running fetch, for callers that need to await it
        """
        self._token += 1
        task = asyncio.ensure_future(self._run(self._token, producer))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, token: int, producer: Callable[[], Awaitable[Optional[T]]]) -> None:
        try:
            result = await producer()
        except Exception as e:
            logging.error(f"{self.name}: prefetch {token} failed: {e}")
            return
        if result is None:
            logging.info(f"{self.name}: prefetch {token} returned nothing")
            return
        if token != self._token:
            logging.debug(f"{self.name}: discarding stale prefetch {token} (current {self._token})")
            return
        self._value = result

    def consume(self) -> Optional[T]:
        """Return and clear the ready value; None means the caller fetches now."""
        value, self._value = self._value, None
        return value

    def peek(self) -> Optional[T]:
        return self._value

    def fill(self, value: Optional[T]) -> None:
        """Seed the slot directly. Fetches already in flight can no longer land."""
        self._token += 1
        self._value = value

    def invalidate(self) -> None:
        self._token += 1

    async def drain(self) -> None:
        """Wait for every outstanding fetch to settle."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
