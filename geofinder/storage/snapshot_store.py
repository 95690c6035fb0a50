"""Snapshot store: screen-scoped session records with a max-age policy.

Every record is written as a JSON object merged with ``savedAt`` (epoch
milliseconds). Reading back validates the record defensively and treats
anything malformed or older than the max age as absent. Storage failures
are logged and never raised into the caller.
"""

import json
import logging
import math
import time
from typing import Callable, Optional, Type, TypeVar

from pydantic import ValidationError

from geofinder.models.schema_models import LenientModel
from geofinder.storage.backend import KeyValueStorage

SAVED_AT_FIELD = "savedAt"

SnapshotT = TypeVar("SnapshotT", bound=LenientModel)


def now_ms() -> int:
    return int(time.time() * 1000)


class SnapshotStore:
    def __init__(self, storage: KeyValueStorage, clock: Callable[[], int] = now_ms) -> None:
        self.storage: KeyValueStorage = storage
        self.clock: Callable[[], int] = clock

    async def save(self, key: str, snapshot: LenientModel) -> None:
        """Persist the snapshot, or drop the key when there is nothing to resume

        Args:
            key (str): Screen storage key
            snapshot (LenientModel): Current in-memory state of the screen
        """
        if not snapshot.is_resumable():
            await self.remove(key)
            return
        record = {**snapshot.to_record(), SAVED_AT_FIELD: self.clock()}
        try:
            await self.storage.set(key, json.dumps(record))
        except Exception as e:
            logging.error(f"Failed to persist snapshot {key}: {e}")

    async def remove(self, key: str) -> None:
        try:
            await self.storage.remove(key)
        except Exception as e:
            logging.error(f"Failed to clear snapshot {key}: {e}")

    async def try_restore(
        self, key: str, model: Type[SnapshotT], max_age_ms: int
    ) -> Optional[SnapshotT]:
        """Read a snapshot back if it is still fresh

        The stored record is deleted in every case where one existed: a
        rejected record is purged and a restored one is consumed.

        Args:
            key (str): Screen storage key
            model (Type[SnapshotT]): Snapshot model of the screen
            max_age_ms (int): Records older than this are treated as absent

        Returns:
            Optional[SnapshotT]: The restored snapshot, None if not found
        """
        raw = await self.read_text(key)
        if raw is None:
            return None
        snapshot = self._parse(key, raw, model, max_age_ms)
        await self.remove(key)
        return snapshot

    async def purge_expired(self, key: str, model: Type[LenientModel], max_age_ms: int) -> bool:
        """Delete the record under key if it could not be restored

        Fresh records are left alone, and so is a record rewritten while
        this check was reading it.

        Returns:
            bool: True when the record was deleted
        """
        raw = await self.read_text(key)
        if raw is None:
            return False
        if self._parse(key, raw, model, max_age_ms) is not None:
            return False
        if await self.read_text(key) != raw:
            logging.info(f"Keeping snapshot {key}: rewritten during purge")
            return False
        await self.remove(key)
        return True

    async def read_text(self, key: str) -> Optional[str]:
        try:
            return await self.storage.get(key)
        except Exception as e:
            logging.error(f"Failed to read {key}: {e}")
            return None

    async def write_text(self, key: str, value: str) -> None:
        try:
            await self.storage.set(key, value)
        except Exception as e:
            logging.error(f"Failed to write {key}: {e}")

    def _parse(
        self, key: str, raw: str, model: Type[SnapshotT], max_age_ms: int
    ) -> Optional[SnapshotT]:
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            logging.warning(f"Discarding unreadable snapshot {key}: {e}")
            return None
        if not isinstance(data, dict):
            logging.warning(f"Discarding snapshot {key}: not an object")
            return None

        saved_at = data.get(SAVED_AT_FIELD)
        if (
            isinstance(saved_at, bool)
            or not isinstance(saved_at, (int, float))
            or not math.isfinite(saved_at)
        ):
            logging.warning(f"Discarding snapshot {key}: missing timestamp")
            return None
        age_ms = self.clock() - saved_at
        if age_ms > max_age_ms:
            logging.info(f"Discarding expired snapshot {key} (age {age_ms} ms)")
            return None

        try:
            snapshot = model.model_validate(data)
        except ValidationError as e:
            logging.warning(f"Discarding invalid snapshot {key}: {e}")
            return None
        if not snapshot.is_resumable():
            logging.info(f"Discarding snapshot {key}: nothing to resume")
            return None
        return snapshot
