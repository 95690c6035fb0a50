import logging
from typing import Any, Dict, List, Optional, Protocol, Type

from geofinder import load_settings
from geofinder.lifecycle import AppStateSource, LifecycleObserver
from geofinder.models.dc_models import AlertModel, ScreenName
from geofinder.models.schema_models import LenientModel, RoundPayload
from geofinder.storage.snapshot_store import SnapshotStore
from geofinder.suppression import SuppressionFlag


class SessionStateError(Exception):
    """The requested operation is not allowed in the controller's current state."""


class Notifier(Protocol):
    def alert(self, title: str, message: str) -> None:
        ...


class LoggingNotifier:
    def alert(self, title: str, message: str) -> None:
        logging.warning(f"{title}: {message}")


class CollectingNotifier:
    """Keeps alerts until the UI picks them up; each alert is shown once."""

    def __init__(self) -> None:
        self.alerts: List[AlertModel] = []

    def alert(self, title: str, message: str) -> None:
        logging.info(f"Alert queued: {title}: {message}")
        self.alerts.append(AlertModel(title=title, message=message))

    def drain(self) -> List[AlertModel]:
        alerts, self.alerts = self.alerts, []
        return alerts


class Navigator(Protocol):
    async def navigate(self, screen: ScreenName, prefetched_round: Optional[RoundPayload] = None) -> None:
        ...


class ScreenController:
    """Shared wiring of one screen instance.

    Subclasses declare their storage key and snapshot model, and implement
    ``snapshot``/``hydrate``/``bootstrap``/``view``. The lifecycle observer
    persists on background and teardown and restores on resume.
    """

    screen_name: ScreenName
    storage_key: str
    snapshot_model: Type[LenientModel]

    def __init__(
        self,
        store: SnapshotStore,
        app_state: AppStateSource,
        navigator: Navigator,
        notifier: Optional[Notifier] = None,
        *,
        max_age_ms: int = load_settings.snapshot_max_age_ms,
    ) -> None:
        self.store = store
        self.navigator = navigator
        self.notifier: Notifier = notifier or LoggingNotifier()
        self.max_age_ms = max_age_ms
        self.suppression = SuppressionFlag()
        self.observer = LifecycleObserver(
            app_state,
            self.suppression,
            persist=self.persist,
            restore=self.restore,
            cancel_pending=self.cancel_pending,
            name=self.screen_name.value,
        )

    def snapshot(self) -> LenientModel:
        raise NotImplementedError

    def hydrate(self, snapshot: LenientModel) -> None:
        raise NotImplementedError

    async def bootstrap(self) -> None:
        raise NotImplementedError

    def view(self) -> Dict[str, Any]:
        raise NotImplementedError

    def cancel_pending(self) -> None:
        """Cancel delayed transitions that must not fire after a resume."""

    async def start(self) -> None:
        self.observer.attach()
        try:
            await self.bootstrap()
        except Exception as e:
            logging.error(f"Error during {self.screen_name.value} bootstrap: {e}")

    async def dispose(self) -> None:
        await self.observer.teardown()

    async def persist(self) -> None:
        await self.store.save(self.storage_key, self.snapshot())

    async def restore(self) -> bool:
        snapshot = await self.store.try_restore(self.storage_key, self.snapshot_model, self.max_age_ms)
        if snapshot is None:
            return False
        self.hydrate(snapshot)
        return True

    async def clear_persisted(self) -> None:
        await self.store.remove(self.storage_key)
