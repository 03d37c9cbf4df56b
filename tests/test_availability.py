"""Tests for the availability finder and the fan-out pool it runs on."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from datetime import date

import pytest

from planscope.config import AvailabilitySettings, ConcurrencySettings
from planscope.exceptions import ValidationError
from planscope.models import ResourceAllocation, User
from planscope.resources import AvailabilityFinder, CapacityService
from planscope.resources.pool import fan_out
from planscope.store import InMemoryStore
from tests.conftest import MONDAY

NEXT_MONDAY = date(2025, 1, 13)


def allocate(store: InMemoryStore, user_id: str, hours: float, week: date = MONDAY) -> None:
    store.add_allocation(
        ResourceAllocation(user_id=user_id, project_id="P", week_start=week, allocated_hours=hours)
    )


def make_finder(store: InMemoryStore, **settings: float) -> AvailabilityFinder:
    return AvailabilityFinder(
        store,
        CapacityService(store),
        AvailabilitySettings(**settings),
        ConcurrencySettings(max_workers=3),
    )


@pytest.fixture
def roster(store: InMemoryStore, add_user: Callable[..., User]) -> InMemoryStore:
    for user_id in ("ana", "ben", "cy", "dee"):
        add_user(user_id)
    add_user("eve", is_active=False)
    allocate(store, "ben", 35)
    allocate(store, "cy", 30)
    return store


class TestGetAvailableResources:
    def test_filters_below_min_hours_and_sorts(self, roster: InMemoryStore) -> None:
        results = make_finder(roster).get_available_resources(
            "acme", MONDAY, date(2025, 1, 11), 10
        )

        assert [r.to_dict() for r in results] == [
            {"userId": "ana", "availableHours": 40.0},
            {"userId": "dee", "availableHours": 40.0},
            {"userId": "cy", "availableHours": 10.0},
        ]

    def test_every_result_meets_minimum(self, roster: InMemoryStore) -> None:
        for min_hours in (0, 5, 10, 11, 40, 41):
            results = make_finder(roster).get_available_resources(
                "acme", MONDAY, date(2025, 1, 11), min_hours
            )
            assert all(r.available_hours >= min_hours for r in results)
            hours = [r.available_hours for r in results]
            assert hours == sorted(hours, reverse=True)

    def test_partial_weeks_prorated(self, roster: InMemoryStore) -> None:
        allocate(roster, "ana", 40, NEXT_MONDAY)

        results = make_finder(roster).get_available_resources(
            "acme", date(2025, 1, 8), date(2025, 1, 15), 0
        )
        by_user = {r.user_id: r.available_hours for r in results}

        # Wed-Fri is 3/5 of the first week, Mon-Tue 2/5 of the second
        assert by_user["ana"] == pytest.approx(24)
        assert by_user["ben"] == pytest.approx(3 + 16)
        assert by_user["dee"] == pytest.approx(40)

    def test_multi_week_range(self, roster: InMemoryStore) -> None:
        results = make_finder(roster).get_available_resources(
            "acme", MONDAY, date(2025, 1, 20), 0
        )
        by_user = {r.user_id: r.available_hours for r in results}

        assert by_user["ana"] == pytest.approx(80)
        assert by_user["ben"] == pytest.approx(45)

    def test_default_min_hours_from_settings(self, roster: InMemoryStore) -> None:
        finder = make_finder(roster, default_min_hours=20)

        results = finder.get_available_resources("acme", MONDAY, date(2025, 1, 11))

        assert [r.user_id for r in results] == ["ana", "dee"]

    def test_inactive_users_excluded(self, roster: InMemoryStore) -> None:
        results = make_finder(roster).get_available_resources(
            "acme", MONDAY, date(2025, 1, 11), 0
        )

        assert "eve" not in {r.user_id for r in results}

    def test_invalid_arguments(self, roster: InMemoryStore) -> None:
        finder = make_finder(roster)

        with pytest.raises(ValidationError, match="Invalid date range"):
            finder.get_available_resources("acme", MONDAY, MONDAY, 0)
        with pytest.raises(ValidationError, match="min_hours"):
            finder.get_available_resources("acme", MONDAY, date(2025, 1, 11), -1)


class TestFanOut:
    def test_results_in_input_order(self) -> None:
        def slow_square(n: int) -> int:
            time.sleep(0.01 * (5 - n))
            return n * n

        assert fan_out(slow_square, [1, 2, 3, 4], max_workers=4) == [1, 4, 9, 16]

    def test_empty_input(self) -> None:
        assert fan_out(str, [], max_workers=4) == []

    def test_concurrency_is_bounded(self) -> None:
        lock = threading.Lock()
        running = 0
        peak = 0

        def work(_: int) -> None:
            nonlocal running, peak
            with lock:
                running += 1
                peak = max(peak, running)
            time.sleep(0.02)
            with lock:
                running -= 1

        fan_out(work, list(range(10)), max_workers=2)

        assert peak <= 2

    def test_failure_propagates(self) -> None:
        def explode(n: int) -> int:
            if n == 3:
                raise RuntimeError("datastore unavailable")
            return n

        with pytest.raises(RuntimeError, match="datastore unavailable"):
            fan_out(explode, [1, 2, 3, 4], max_workers=2)
