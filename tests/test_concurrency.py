"""Concurrent read-modify-write on one user's record."""

import asyncio

import pytest

from interview_progress.config import Settings
from interview_progress.errors import VersionConflictError
from interview_progress.models.activity import Activity, ActivityType, UserActivityRecord
from interview_progress.services.activity_tracking import ActivityTrackingService
from interview_progress.storage.activity_store import InMemoryActivityStore


class InterleavingStore(InMemoryActivityStore):
    """Holds readers until ``count`` of them have read, so all writes see stale data."""

    def __init__(self):
        super().__init__()
        self._pending = 0
        self._released = asyncio.Event()

    def hold_next_reads(self, count: int) -> None:
        self._pending = count
        self._released = asyncio.Event()

    async def find_one(self, user_id: str) -> UserActivityRecord | None:
        record = await super().find_one(user_id)
        if self._pending > 0:
            self._pending -= 1
            if self._pending == 0:
                self._released.set()
            await self._released.wait()
        return record


@pytest.fixture
def racy_store():
    return InterleavingStore()


def make_service(store, directory, clock, tmp_path, **overrides):
    settings = Settings(data_dir=tmp_path, store_backend="memory", **overrides)
    return ActivityTrackingService(store, directory, settings, clock=clock)


async def add_two_concurrently(service, store):
    await service.initialize_user_activity("user-1")
    store.hold_next_reads(2)
    return await asyncio.gather(
        service.add_activity("user-1", Activity(type=ActivityType.QUIZ, reference_id="a")),
        service.add_activity("user-1", Activity(type=ActivityType.PRACTICE, reference_id="b")),
        return_exceptions=True,
    )


class TestLostUpdate:
    async def test_last_writer_wins_by_default(self, racy_store, directory, clock, tmp_path):
        service = make_service(racy_store, directory, clock, tmp_path)
        await add_two_concurrently(service, racy_store)

        record = await racy_store.find_one("user-1")
        assert len(record.activities) == 1

    async def test_optimistic_writes_keep_both(self, racy_store, directory, clock, tmp_path):
        service = make_service(racy_store, directory, clock, tmp_path, optimistic_concurrency=True)
        results = await add_two_concurrently(service, racy_store)
        assert not any(isinstance(r, Exception) for r in results)

        record = await racy_store.find_one("user-1")
        assert sorted(a.reference_id for a in record.activities) == ["a", "b"]
        assert record.version == 2

    async def test_conflict_surfaces_when_retries_exhausted(self, racy_store, directory, clock, tmp_path):
        service = make_service(
            racy_store, directory, clock, tmp_path, optimistic_concurrency=True, max_write_retries=0
        )
        results = await add_two_concurrently(service, racy_store)

        assert sum(isinstance(r, VersionConflictError) for r in results) == 1
        record = await racy_store.find_one("user-1")
        assert len(record.activities) == 1
