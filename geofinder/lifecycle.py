import logging
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from geofinder.suppression import SuppressionFlag


class AppState(str, Enum):
    active = "active"
    inactive = "inactive"
    background = "background"


AppStateListener = Callable[[AppState], Awaitable[None]]


class Subscription:
    """Handle returned by AppStateSource.add_listener."""

    def __init__(self, source: "AppStateSource", listener: AppStateListener) -> None:
        self._source = source
        self._listener = listener

    def remove(self) -> None:
        self._source.remove_listener(self._listener)


class AppStateSource:
    """App-level foreground/background transitions for one client."""

    def __init__(self) -> None:
        self.listeners: List[AppStateListener] = []
        self.current: AppState = AppState.active

    def add_listener(self, listener: AppStateListener) -> Subscription:
        self.listeners.append(listener)
        return Subscription(self, listener)

    def remove_listener(self, listener: AppStateListener) -> None:
        if listener in self.listeners:
            self.listeners.remove(listener)

    async def emit(self, state: AppState) -> None:
        """Notify every listener of a transition, in subscription order

        Args:
            state (AppState): The state the app moved to
        """
        logging.info(f"App state changed: {self.current.value} -> {state.value}")
        self.current = state
        for listener in list(self.listeners):
            await listener(state)


class LifecycleObserver:
    """Maps app transitions and screen teardown to persist/restore actions.

    - background/inactive: cancel pending delayed transitions, then persist
      unless suppressed.
    - active: try to restore.
    - teardown: cancel, unsubscribe, persist unless suppressed.
    Persist and restore failures are logged and otherwise ignored.
    """

    def __init__(
        self,
        source: AppStateSource,
        suppression: SuppressionFlag,
        *,
        persist: Callable[[], Awaitable[None]],
        restore: Callable[[], Awaitable[bool]],
        cancel_pending: Callable[[], None],
        name: str = "screen",
    ) -> None:
        self.source = source
        self.suppression = suppression
        self.persist = persist
        self.restore = restore
        self.cancel_pending = cancel_pending
        self.name = name
        self._subscription: Optional[Subscription] = None

    @property
    def attached(self) -> bool:
        return self._subscription is not None

    def attach(self) -> None:
        if self._subscription is None:
            self._subscription = self.source.add_listener(self.on_app_state)

    def detach(self) -> None:
        if self._subscription is not None:
            self._subscription.remove()
            self._subscription = None

    async def on_app_state(self, state: AppState) -> None:
        if state in (AppState.background, AppState.inactive):
            self.cancel_pending()
            await self.persist_unless_suppressed()
        elif state == AppState.active:
            try:
                restored = await self.restore()
                logging.info(f"{self.name}: resumed (restored={restored})")
            except Exception as e:
                logging.error(f"{self.name}: failed to restore state: {e}")

    async def teardown(self) -> None:
        self.cancel_pending()
        self.detach()
        await self.persist_unless_suppressed()

    async def persist_unless_suppressed(self) -> None:
        if self.suppression.consume():
            logging.info(f"{self.name}: persistence suppressed after exit")
            return
        try:
            await self.persist()
        except Exception as e:
            logging.error(f"{self.name}: failed to persist state: {e}")
