"""Weekly resource capacity.

Capacity is a per-user ceiling: standard hours per day times the user's
working days in a week, less holidays and approved time off. Allocations are
planned commitments against that ceiling. Over-allocation is allowed and
reported, never blocked.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import TYPE_CHECKING, Any

from planscope.calendar import (
    DAYS_PER_WEEK,
    FixedHolidayCalendar,
    HolidayCalendar,
    is_week_start,
    iter_days,
    weeks_overlapping,
)
from planscope.config import CapacitySettings
from planscope.exceptions import ValidationError
from planscope.logger import get_logger
from planscope.models import ResourceAllocation, WeeklyCapacityProfile

if TYPE_CHECKING:
    from planscope.store import ResourceRepository

logger = get_logger(__name__)


@dataclass(frozen=True)
class ResourceCapacity:
    """Capacity of one user for one Monday-aligned week."""

    user_id: str
    week_start: date
    total_hours: float
    allocated_hours: float

    @property
    def available_hours(self) -> float:
        return max(0.0, self.total_hours - self.allocated_hours)

    @property
    def over_allocated_hours(self) -> float:
        return max(0.0, self.allocated_hours - self.total_hours)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalHours": self.total_hours,
            "allocatedHours": self.allocated_hours,
            "availableHours": self.available_hours,
        }


def _default_allocations() -> list[ResourceAllocation]:
    return []


@dataclass(frozen=True)
class AllocationConflict:
    """An over-allocated week and the allocations contributing to it."""

    user_id: str
    week_start: date
    allocated_hours: float
    total_hours: float
    allocations: list[ResourceAllocation] = field(default_factory=_default_allocations)

    @property
    def over_allocated_hours(self) -> float:
        return self.allocated_hours - self.total_hours


class CapacityService:
    """Computes weekly capacity from profiles, holidays and allocations."""

    def __init__(
        self,
        store: ResourceRepository,
        settings: CapacitySettings | None = None,
        holidays: HolidayCalendar | None = None,
    ):
        self.store = store
        self.settings = settings or CapacitySettings()
        self.holidays = holidays or FixedHolidayCalendar()

    def profile_for(self, user_id: str) -> WeeklyCapacityProfile:
        """The user's capacity profile, or one built from the configured defaults."""
        profile = self.store.get_capacity_profile(user_id)
        if profile is not None:
            return profile
        return WeeklyCapacityProfile(
            user_id=user_id,
            hours_per_day=self.settings.default_hours_per_day,
            working_days=list(self.settings.default_working_days),
        )

    def working_days(self, profile: WeeklyCapacityProfile, start: date, end: date) -> int:
        """Standard working days in [start, end): profile weekdays less holidays."""
        holidays = self.holidays.holidays_in(start, end)
        return sum(
            1
            for day in iter_days(start, end)
            if day.weekday() in profile.working_days and day not in holidays
        )

    def weekly_total_hours(self, profile: WeeklyCapacityProfile, week_start: date) -> float:
        """Capacity ceiling for one week, net of holidays and approved time off."""
        week_end = week_start + timedelta(days=DAYS_PER_WEEK)
        holidays = self.holidays.holidays_in(week_start, week_end)
        days = sum(
            1
            for day in iter_days(week_start, week_end)
            if day.weekday() in profile.working_days
            and day not in holidays
            and not profile.is_on_leave(day)
        )
        return days * profile.hours_per_day

    def get_resource_capacity(self, user_id: str, week_start: date) -> ResourceCapacity:
        """Total, allocated and available hours for a user's week.

        Raises:
            ValidationError: If week_start is not a Monday
            NotFoundError: If the user does not exist
        """
        require_week_start(week_start)
        self.store.get_user(user_id)

        profile = self.profile_for(user_id)
        total = self.weekly_total_hours(profile, week_start)
        allocated = sum(a.allocated_hours for a in self.store.get_allocations(user_id, week_start))

        capacity = ResourceCapacity(
            user_id=user_id,
            week_start=week_start,
            total_hours=total,
            allocated_hours=allocated,
        )
        if capacity.over_allocated_hours > 0:
            logger.checks(
                f"User '{user_id}' over-allocated by {capacity.over_allocated_hours:g}h "
                f"in week {week_start}"
            )
        return capacity

    def check_allocation_conflicts(
        self, user_id: str, week_start: date, additional_hours: float = 0.0
    ) -> AllocationConflict | None:
        """Report over-allocation for a week, optionally including a proposed allocation."""
        if additional_hours < 0:
            raise ValidationError(f"additional_hours must not be negative, got {additional_hours}")

        capacity = self.get_resource_capacity(user_id, week_start)
        allocated = capacity.allocated_hours + additional_hours
        if allocated <= capacity.total_hours:
            return None
        return AllocationConflict(
            user_id=user_id,
            week_start=week_start,
            allocated_hours=allocated,
            total_hours=capacity.total_hours,
            allocations=self.store.get_allocations(user_id, week_start),
        )

    def prorate_weeks(
        self,
        profile: WeeklyCapacityProfile,
        start: date,
        end: date,
        weekly_hours: Callable[[date], float],
    ) -> float:
        """Sum a weekly figure over [start, end), pro-rating partial boundary weeks.

        Each overlapping week contributes ``weekly_hours(week_start)`` scaled by
        the share of that week's working days falling inside the range.
        """
        total = 0.0
        for week in weeks_overlapping(start, end):
            share = self.week_share(profile, week, start, end)
            if share > 0:
                total += weekly_hours(week) * share
        return total

    def week_share(
        self, profile: WeeklyCapacityProfile, week_start: date, start: date, end: date
    ) -> float:
        """Fraction of a week's working days that fall inside [start, end)."""
        week_end = week_start + timedelta(days=DAYS_PER_WEEK)
        in_week = self.working_days(profile, week_start, week_end)
        if in_week == 0:
            return 0.0
        inside = self.working_days(profile, max(week_start, start), min(week_end, end))
        return inside / in_week


def require_week_start(week_start: date) -> None:
    """Reject week keys that are not Monday-aligned."""
    if not is_week_start(week_start):
        raise ValidationError(f"Week start {week_start} is not a Monday")


def validate_range(start: date, end: date) -> None:
    """Reject empty or inverted half-open date ranges."""
    if end <= start:
        raise ValidationError(f"Invalid date range: start {start} must be before end {end}")
