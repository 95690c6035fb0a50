import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple, Type

from geofinder import load_settings
from geofinder.controllers.ai_duel import AI_DUEL_STATE_STORAGE_KEY, AiDuelController
from geofinder.controllers.base import CollectingNotifier, ScreenController
from geofinder.controllers.main_menu import MAIN_MENU_STATE_STORAGE_KEY, MainMenuController
from geofinder.controllers.round_game import (
    GAME_STATE_STORAGE_KEY,
    PANO_GAME_STATE_STORAGE_KEY,
    GameController,
    PanoGameController,
)
from geofinder.lifecycle import AppState, AppStateSource
from geofinder.models.dc_models import ScreenName, ScreenStateModel
from geofinder.models.schema_models import (
    AiDuelSnapshot,
    GameSnapshot,
    LenientModel,
    MainMenuSnapshot,
    RoundPayload,
)
from geofinder.services.ai_duel import AiDuelClient
from geofinder.services.leaderboard import LeaderboardReader, ScoreSubmitter, SessionRegistrar
from geofinder.services.round_source import RoundSource
from geofinder.session_ids import SessionIdLedger
from geofinder.storage.backend import KeyValueStorage, NamespacedStorage
from geofinder.storage.snapshot_store import SnapshotStore, now_ms

SCREEN_SNAPSHOTS: List[Tuple[str, Type[LenientModel]]] = [
    (GAME_STATE_STORAGE_KEY, GameSnapshot),
    (PANO_GAME_STATE_STORAGE_KEY, GameSnapshot),
    (AI_DUEL_STATE_STORAGE_KEY, AiDuelSnapshot),
    (MAIN_MENU_STATE_STORAGE_KEY, MainMenuSnapshot),
]


@dataclass
class Services:
    storage: KeyValueStorage
    round_source: RoundSource
    pano_round_source: RoundSource
    registrar: SessionRegistrar
    submitter: ScoreSubmitter
    leaderboard: LeaderboardReader
    ai_duel: AiDuelClient
    clock: Callable[[], int] = now_ms


class DeviceSession:
    """One client device: its storage namespace, app state and current screen."""

    def __init__(self, device_id: str, services: Services) -> None:
        self.device_id = device_id
        self.services = services
        self.store = SnapshotStore(NamespacedStorage(services.storage, device_id), services.clock)
        self.ledger = SessionIdLedger(self.store)
        self.app_state = AppStateSource()
        self.notifier = CollectingNotifier()
        self.screen: Optional[ScreenName] = None
        self.controller: Optional[ScreenController] = None

    async def navigate(self, screen: ScreenName, prefetched_round: Optional[RoundPayload] = None) -> None:
        """Tear down the current screen and start the requested one

        Args:
            screen (ScreenName): Screen to show
            prefetched_round (Optional[RoundPayload]): Round handed over from the main menu
        """
        previous, self.controller = self.controller, None
        if previous is not None:
            await previous.dispose()
        logging.info(f"Device {self.device_id}: navigating to {screen.value}")
        controller = self._build(screen, prefetched_round)
        self.screen = screen
        self.controller = controller
        await controller.start()

    def _build(self, screen: ScreenName, prefetched_round: Optional[RoundPayload]) -> ScreenController:
        s = self.services
        if screen == ScreenName.main_menu:
            return MainMenuController(
                self.store, self.app_state, self, s.round_source, s.leaderboard, self.notifier, ledger=self.ledger
            )
        if screen == ScreenName.game:
            return GameController(
                self.store, self.app_state, self, s.round_source, s.registrar, s.submitter, self.notifier,
                ledger=self.ledger, initial_round=prefetched_round,
            )
        if screen == ScreenName.pano_game:
            return PanoGameController(
                self.store, self.app_state, self, s.pano_round_source, s.registrar, s.submitter, self.notifier,
                ledger=self.ledger, initial_round=prefetched_round,
            )
        if screen == ScreenName.ai_duel:
            return AiDuelController(
                self.store, self.app_state, self, s.ai_duel, self.notifier, initial_round=prefetched_round
            )
        raise ValueError(f"Unknown screen: {screen}")

    async def set_app_state(self, state: AppState) -> None:
        await self.app_state.emit(state)

    async def close(self) -> None:
        previous, self.controller = self.controller, None
        if previous is not None:
            await previous.dispose()

    def view(self) -> ScreenStateModel:
        if self.controller is None or self.screen is None:
            raise LookupError(f"Device {self.device_id} has no screen")
        return ScreenStateModel(screen=self.screen, state=self.controller.view(), alerts=self.notifier.drain())


class DeviceManager:
    def __init__(self) -> None:
        self.services: Optional[Services] = None
        self.devices: Dict[str, DeviceSession] = {}

    def configure(self, services: Services) -> None:
        self.services = services

    def get(self, device_id: str) -> DeviceSession:
        """Raises KeyError for a device that never connected."""
        return self.devices[device_id]

    async def connect(self, device_id: str) -> DeviceSession:
        if device_id in self.devices:
            return self.devices[device_id]
        if self.services is None:
            raise RuntimeError("Device manager is not configured")
        device = DeviceSession(device_id, self.services)
        self.devices[device_id] = device
        logging.info(f"Device connected: {device_id}")
        return device

    async def disconnect(self, device_id: str) -> None:
        device = self.devices.get(device_id)
        if device is not None:
            await device.close()
            self.devices.pop(device_id, None)
            logging.info(f"Device disconnected: {device_id}")

    async def close(self) -> None:
        for device_id in list(self.devices):
            await self.disconnect(device_id)

    async def purge_expired_snapshots(self, max_age_ms: int = load_settings.snapshot_max_age_ms) -> int:
        """Delete screen records that could no longer be restored, across all devices

        Connected devices are skipped: their screens read and write those keys
        themselves, and an expired record is dropped on their next restore.
        """
        if self.services is None:
            return 0
        store = SnapshotStore(self.services.storage, self.services.clock)
        try:
            keys = await self.services.storage.keys()
        except Exception as e:
            logging.error(f"Failed to list stored keys: {e}")
            return 0
        purged = 0
        for key in keys:
            for screen_key, model in SCREEN_SNAPSHOTS:
                if not key.endswith(f":{screen_key}"):
                    continue
                if key[: -len(screen_key) - 1] in self.devices:
                    continue
                if await store.purge_expired(key, model, max_age_ms):
                    purged += 1
        if purged:
            logging.info(f"Purged {purged} expired snapshots")
        return purged


device_manager = DeviceManager()
