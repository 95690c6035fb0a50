import json
import logging
from typing import List, Set

from geofinder.storage.snapshot_store import SnapshotStore

SESSION_IDS_KEY = "gameSessionIds"


class SessionIdLedger:
    """Session ids this client started, used to spot its own leaderboard entries."""

    def __init__(self, store: SnapshotStore, key: str = SESSION_IDS_KEY) -> None:
        self.store = store
        self.key = key

    async def load(self) -> Set[str]:
        return set(await self._read())

    async def remember(self, session_id: str) -> None:
        """Append session_id, keeping the stored list free of duplicates."""
        ids = await self._read()
        if session_id not in ids:
            ids.append(session_id)
        await self.store.write_text(self.key, json.dumps(ids))

    async def _read(self) -> List[str]:
        raw = await self.store.read_text(self.key)
        if not raw:
            return []
        try:
            parsed = json.loads(raw)
        except ValueError as e:
            logging.error(f"Failed to load cached game session ids: {e}")
            return []
        if not isinstance(parsed, list):
            return []
        return [v for v in parsed if isinstance(v, str) and v.strip()]
