"""Shared fixtures: in-memory store, stub directory and a controllable clock."""

from datetime import datetime, timedelta, timezone

import pytest

from interview_progress.config import Settings
from interview_progress.models.entities import Interview, Position, User
from interview_progress.services.activity_tracking import ActivityTrackingService
from interview_progress.services.integration import TrackingIntegrationService
from interview_progress.storage.activity_store import InMemoryActivityStore


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class StubDirectory:
    """Canonical entities held in dicts."""

    def __init__(self):
        self.users: dict[str, User] = {}
        self.positions: dict[str, Position] = {}
        self.interviews: dict[str, Interview] = {}

    def add_user(self, user: User) -> None:
        self.users[user.id] = user

    async def get_user(self, user_id: str) -> User | None:
        return self.users.get(user_id)

    async def get_user_by_external_id(self, external_id: str) -> User | None:
        return next((u for u in self.users.values() if u.external_id == external_id), None)

    async def get_position(self, position_id: str) -> Position | None:
        return self.positions.get(position_id)

    async def get_interview(self, interview_id: str) -> Interview | None:
        return self.interviews.get(interview_id)


@pytest.fixture
def clock():
    # Monday morning UTC
    return FakeClock(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings(tmp_path):
    return Settings(data_dir=tmp_path, store_backend="memory")


@pytest.fixture
def directory():
    d = StubDirectory()
    d.add_user(User(id="user-1", external_id="clerk_abc", name="Ada", email="ada@example.com"))
    return d


@pytest.fixture
def store():
    return InMemoryActivityStore()


@pytest.fixture
def service(store, directory, settings, clock):
    return ActivityTrackingService(store, directory, settings, clock=clock)


@pytest.fixture
def tracking(service):
    return TrackingIntegrationService(service)
