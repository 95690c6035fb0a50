"""Shared fakes for controller and storage tests."""

import asyncio
from typing import List, Optional, Tuple

import pytest

from geofinder.models.dc_models import ScoreStatsModel, ScreenName
from geofinder.models.schema_models import Coordinates, CountryInfo, RoundImage, RoundPayload
from geofinder.storage.backend import MemoryStorage
from geofinder.storage.snapshot_store import SnapshotStore

HOUR_MS = 60 * 60 * 1000


def make_round(
    country: str = "france",
    code: str = "FR",
    display_name: str = "France",
    url: str = "https://img.example/1.jpg",
    lat: float = 48.8566,
    lon: float = 2.3522,
) -> RoundPayload:
    return RoundPayload(
        image=RoundImage(url=url, coord=Coordinates(lat=lat, lon=lon), contributor="tester"),
        country_info=CountryInfo(country=country, country_code=code, display_name=display_name),
    )


class FakeClock:
    def __init__(self, now: int = 1_700_000_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeRoundSource:
    """Returns queued rounds first, then generated ones (always France)."""

    def __init__(self, rounds: Optional[List[RoundPayload]] = None, fail: bool = False) -> None:
        self.rounds = list(rounds or [])
        self.fail = fail
        self.calls = 0

    async def fetch_round(self) -> Optional[RoundPayload]:
        self.calls += 1
        if self.fail:
            raise RuntimeError("network down")
        if self.rounds:
            return self.rounds.pop(0)
        return make_round(url=f"https://img.example/generated-{self.calls}.jpg")


class GatedRoundSource(FakeRoundSource):
    """Holds every fetch while the gate is closed."""

    def __init__(self, rounds: Optional[List[RoundPayload]] = None) -> None:
        super().__init__(rounds)
        self.gate: Optional[asyncio.Event] = None

    def close_gate(self) -> None:
        self.gate = asyncio.Event()

    def open_gate(self) -> None:
        if self.gate is not None:
            self.gate.set()

    async def fetch_round(self) -> Optional[RoundPayload]:
        if self.gate is not None:
            await self.gate.wait()
        return await super().fetch_round()


class FakeRegistrar:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.started = 0

    async def start_session(self) -> str:
        if self.fail:
            raise RuntimeError("registrar offline")
        self.started += 1
        return f"session-{self.started}"


class FakeSubmitter:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.submissions: List[Tuple[str, int, ScoreStatsModel]] = []

    async def submit(self, session_id: str, score: int, stats: ScoreStatsModel) -> None:
        if self.fail:
            raise RuntimeError("submit failed")
        self.submissions.append((session_id, score, stats))


class FakeNavigator:
    def __init__(self) -> None:
        self.visits: List[Tuple[ScreenName, Optional[RoundPayload]]] = []

    async def navigate(self, screen: ScreenName, prefetched_round: Optional[RoundPayload] = None) -> None:
        self.visits.append((screen, prefetched_round))


class FailingStorage(MemoryStorage):
    """Every operation fails, as a broken disk or lost connection would."""

    async def get(self, key: str) -> Optional[str]:
        raise OSError("storage unavailable")

    async def set(self, key: str, value: str) -> None:
        raise OSError("storage unavailable")

    async def remove(self, key: str) -> None:
        raise OSError("storage unavailable")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def store(storage, clock):
    return SnapshotStore(storage, clock)
