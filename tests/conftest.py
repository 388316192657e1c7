"""Shared fixtures: an in-memory activity store and a controllable clock."""

from __future__ import annotations

import copy
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import TypeVar

import pytest

from shared.errors import StoreUnavailable
from shared.models.stream_activity import StreamActivity
from streambot.services.tracker import StreamTracker

T = TypeVar("T")

GUILD_ID = 1000
GUILD_NAME = "Test Guild"
CHANNEL_A = 2001
CHANNEL_B = 2002
USER_ID = 3001


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now

    def set(self, moment: datetime) -> None:
        self.now = moment


class FakeActivityStore:
    """In-memory ``ActivityStore`` with the same write-back rules as the SQL one.

    Aggregates are deep-copied on every read and write so callers never hold
    a live reference to stored state.
    """

    def __init__(self) -> None:
        self.rows: dict[tuple[int, int], StreamActivity] = {}
        self.unavailable = False
        self.writes = 0

    def _check(self) -> None:
        if self.unavailable:
            raise StoreUnavailable("store is down")

    def put(self, activity: StreamActivity) -> None:
        self.rows[(activity.user_id, activity.guild_id)] = copy.deepcopy(activity)

    async def get(self, user_id: int, guild_id: int) -> StreamActivity | None:
        self._check()
        row = self.rows.get((user_id, guild_id))
        return copy.deepcopy(row) if row else None

    async def modify(
        self,
        user_id: int,
        guild_id: int,
        fn: Callable[[StreamActivity], T],
        *,
        default: StreamActivity | None = None,
    ) -> T | None:
        self._check()
        key = (user_id, guild_id)
        if key not in self.rows:
            if default is None:
                return None
            self.rows[key] = copy.deepcopy(default)

        activity = copy.deepcopy(self.rows[key])
        result = fn(activity)
        if result:
            self.rows[key] = copy.deepcopy(activity)
            self.writes += 1
        return result

    async def list_open(self) -> list[StreamActivity]:
        self._check()
        return [copy.deepcopy(a) for a in self.rows.values() if a.has_open_session]

    async def list_overlapping(self, guild_id: int, start: datetime, end: datetime) -> list[StreamActivity]:
        self._check()
        # Same predicate as StreamActivityRepository.list_overlapping
        matches = []
        for activity in self.rows.values():
            if activity.guild_id != guild_id:
                continue
            if any(
                s.start_time < end and (s.start_time >= start or s.end_time is None or s.end_time > start)
                for s in activity.sessions
            ):
                matches.append(copy.deepcopy(activity))
        return matches

    async def list_for_guild(self, guild_id: int) -> list[StreamActivity]:
        self._check()
        return [copy.deepcopy(a) for a in self.rows.values() if a.guild_id == guild_id]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(utc(2025, 1, 1, 10, 0, 0))


@pytest.fixture
def store() -> FakeActivityStore:
    return FakeActivityStore()


@pytest.fixture
def tracker(store: FakeActivityStore, clock: FakeClock) -> StreamTracker:
    return StreamTracker(store, clock=clock)
