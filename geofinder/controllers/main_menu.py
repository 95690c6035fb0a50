import logging
from typing import Any, Dict, List, Optional

import numpy as np

from geofinder import load_settings
from geofinder.controllers.base import Navigator, Notifier, ScreenController
from geofinder.lifecycle import AppStateSource
from geofinder.models.dc_models import LeaderboardEntryModel, ScreenName
from geofinder.models.schema_models import MainMenuSnapshot, RoundPayload
from geofinder.prefetch import PrefetchSlot
from geofinder.recent_cache import RecentlyUsed
from geofinder.services.leaderboard import LeaderboardReader
from geofinder.services.round_source import RoundSource
from geofinder.session_ids import SessionIdLedger
from geofinder.storage.snapshot_store import SnapshotStore

MAIN_MENU_STATE_STORAGE_KEY = "geofinder.mainMenuState.v1"
BACKGROUND_IMAGE_COUNT = 11


class MainMenuController(ScreenController):
    """Entry screen: warms up the first round and rotates background images."""

    screen_name = ScreenName.main_menu
    storage_key = MAIN_MENU_STATE_STORAGE_KEY
    snapshot_model = MainMenuSnapshot

    def __init__(
        self,
        store: SnapshotStore,
        app_state: AppStateSource,
        navigator: Navigator,
        round_source: RoundSource,
        leaderboard: LeaderboardReader,
        notifier: Optional[Notifier] = None,
        *,
        ledger: Optional[SessionIdLedger] = None,
        background_count: int = BACKGROUND_IMAGE_COUNT,
        rng: Optional[np.random.Generator] = None,
        leaderboard_limit: int = load_settings.leaderboard_limit,
        max_age_ms: int = load_settings.snapshot_max_age_ms,
    ) -> None:
        super().__init__(store, app_state, navigator, notifier, max_age_ms=max_age_ms)
        self.round_source = round_source
        self.leaderboard = leaderboard
        self.ledger = ledger or SessionIdLedger(store)
        self.background_count = background_count
        self.rng = rng if rng is not None else np.random.default_rng()
        self.leaderboard_limit = leaderboard_limit
        self.prefetch: PrefetchSlot[RoundPayload] = PrefetchSlot("main menu first round")
        self.recent_backgrounds = RecentlyUsed()
        self.current_index = 0

    def snapshot(self) -> MainMenuSnapshot:
        return MainMenuSnapshot(
            prefetched_round=self.prefetch.peek(),
            current_index=self.current_index,
            cached_images=self.recent_backgrounds.to_list(),
        )

    def hydrate(self, snapshot: MainMenuSnapshot) -> None:
        if snapshot.prefetched_round is not None:
            self.prefetch.fill(snapshot.prefetched_round)
        self.recent_backgrounds.reset(snapshot.cached_images)
        self.current_index = snapshot.current_index

    async def bootstrap(self) -> None:
        restored = await self.restore()
        self.current_index = self.recent_backgrounds.pick(self.background_count, self.rng)
        if not restored:
            await self.clear_persisted()
            self.prefetch_first_round()

    async def restore(self) -> bool:
        if not await super().restore():
            return False
        self.prefetch_first_round()
        return True

    async def dispose(self) -> None:
        await super().dispose()
        self.prefetch.invalidate()

    def prefetch_first_round(self) -> None:
        if self.prefetch.is_fetching or self.prefetch.peek() is not None:
            return
        self.prefetch.begin_fetch(self.round_source.fetch_round)

    def _hand_over(self) -> Optional[RoundPayload]:
        """Take the ready round for the next screen and start warming up another."""
        was_fetching = self.prefetch.is_fetching
        round_data = self.prefetch.consume()
        if round_data is not None or not was_fetching:
            self.prefetch.begin_fetch(self.round_source.fetch_round)
        return round_data

    async def start_game(self) -> None:
        await self.navigator.navigate(ScreenName.game, self._hand_over())

    async def start_ai_game(self) -> None:
        await self.navigator.navigate(ScreenName.ai_duel, self._hand_over())

    async def start_pano_game(self) -> None:
        await self.navigator.navigate(ScreenName.pano_game)

    async def get_leaderboard(self) -> List[LeaderboardEntryModel]:
        """Top scores, with this client's own sessions marked. Empty on failure."""
        try:
            entries = await self.leaderboard.get_leaderboard(self.leaderboard_limit)
            own_ids = await self.ledger.load()
        except Exception as e:
            logging.error(f"Error fetching leaderboard: {e}")
            return []
        return [
            LeaderboardEntryModel(
                **entry.model_dump(),
                is_own=entry.game_session_id is not None and entry.game_session_id in own_ids,
            )
            for entry in entries
        ]

    def view(self) -> Dict[str, Any]:
        return {
            "hasPrefetchedRound": self.prefetch.peek() is not None,
            "isPrefetching": self.prefetch.is_fetching,
            **self.snapshot().to_record(),
        }
