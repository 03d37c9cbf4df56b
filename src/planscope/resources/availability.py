"""Availability search across an organization's resources."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Any

from planscope.config import AvailabilitySettings, ConcurrencySettings
from planscope.exceptions import ValidationError
from planscope.logger import get_logger
from planscope.models import User

from .capacity import CapacityService, validate_range
from .pool import fan_out

if TYPE_CHECKING:
    from planscope.store import ResourceRepository

logger = get_logger(__name__)


@dataclass(frozen=True)
class AvailableResource:
    user_id: str
    available_hours: float

    def to_dict(self) -> dict[str, Any]:
        return {"userId": self.user_id, "availableHours": round(self.available_hours, 2)}


class AvailabilityFinder:
    """Finds users with at least a minimum of free hours in a date range."""

    def __init__(
        self,
        store: ResourceRepository,
        capacity: CapacityService,
        settings: AvailabilitySettings | None = None,
        concurrency: ConcurrencySettings | None = None,
    ):
        self.store = store
        self.capacity = capacity
        self.settings = settings or AvailabilitySettings()
        self.concurrency = concurrency or ConcurrencySettings()

    def available_hours(self, user: User, start: date, end: date) -> float:
        """Free hours in [start, end): weekly availableHours, boundary weeks pro-rated."""
        profile = self.capacity.profile_for(user.id)
        return self.capacity.prorate_weeks(
            profile,
            start,
            end,
            lambda week: self.capacity.get_resource_capacity(user.id, week).available_hours,
        )

    def get_available_resources(
        self,
        org_id: str,
        start: date,
        end: date,
        min_hours: float | None = None,
    ) -> list[AvailableResource]:
        """Users with at least ``min_hours`` free in [start, end).

        Sorted by available hours descending, ties broken by user id.

        Raises:
            ValidationError: If the range is empty or min_hours is negative
        """
        validate_range(start, end)
        if min_hours is None:
            min_hours = self.settings.default_min_hours
        if min_hours < 0:
            raise ValidationError(f"min_hours must not be negative, got {min_hours}")

        users = sorted(self.store.list_assignable_users(org_id), key=lambda u: u.id)
        hours = fan_out(
            lambda user: self.available_hours(user, start, end),
            users,
            self.concurrency.max_workers,
        )

        results: list[AvailableResource] = []
        for user, available in zip(users, hours, strict=True):
            if available < min_hours:
                logger.checks(
                    f"User '{user.id}': {available:g}h available, below {min_hours:g}h"
                )
                continue
            results.append(AvailableResource(user_id=user.id, available_hours=available))

        results.sort(key=lambda r: (-r.available_hours, r.user_id))
        logger.info(
            f"Org '{org_id}' {start}..{end}: {len(results)} of {len(users)} users "
            f"have at least {min_hours:g}h available"
        )
        return results
