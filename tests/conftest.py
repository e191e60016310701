"""
Shared fixtures for RideOut tests.
"""

from datetime import datetime, timedelta, timezone

import pytest

from rideout.registry.item_registry import ItemRegistry
from rideout.registry.rating_store import RatingStore
from rideout.service import RateMyRideService
from rideout.session import ViewerSession
from rideout.utils.storage import DocumentStore
from rideout.utils.timestamps import utc_timestamp


class TickingClock:
    """Returns a timestamp one second later on every call."""

    def __init__(self, start=datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self) -> str:
        self.current += timedelta(seconds=1)
        return utc_timestamp(self.current)


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def store():
    return DocumentStore()


@pytest.fixture
def rating_store(store, clock):
    return RatingStore(store, clock=clock)


@pytest.fixture
def registry(store, rating_store, clock):
    return ItemRegistry(store, rating_store, clock=clock)


@pytest.fixture
def service(store, clock):
    return RateMyRideService(store, clock=clock)


@pytest.fixture
def owner():
    return ViewerSession.acquire("owner-1")


@pytest.fixture
def rater_a():
    return ViewerSession.acquire("rater-a")


@pytest.fixture
def rater_b():
    return ViewerSession.acquire("rater-b")
