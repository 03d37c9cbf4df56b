"""Utilization: actual logged hours against capacity and planned allocations."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Any

from planscope.calendar import weeks_overlapping
from planscope.logger import get_logger

from .capacity import CapacityService, validate_range

if TYPE_CHECKING:
    from planscope.store import ResourceRepository

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProjectUtilization:
    """Planned and logged hours of one user on one project."""

    project_id: str
    planned_hours: float
    actual_hours: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "projectId": self.project_id,
            "plannedHours": self.planned_hours,
            "actualHours": self.actual_hours,
        }


@dataclass(frozen=True)
class ResourceUtilization:
    """Logged time for a user over [start, end)."""

    user_id: str
    start: date
    end: date
    billable_hours: float
    non_billable_hours: float
    capacity_hours: float
    planned_hours: float = 0.0
    projects: tuple[ProjectUtilization, ...] = ()

    @property
    def logged_hours(self) -> float:
        return self.billable_hours + self.non_billable_hours

    @property
    def utilization_percent(self) -> float:
        """Logged hours as a percentage of capacity; 0 when there is no capacity."""
        if self.capacity_hours <= 0:
            return 0.0
        return self.logged_hours / self.capacity_hours * 100

    def to_dict(self) -> dict[str, Any]:
        return {
            "billableHours": self.billable_hours,
            "nonBillableHours": self.non_billable_hours,
            "utilizationPercent": round(self.utilization_percent, 2),
            "plannedHours": round(self.planned_hours, 2),
            "actualHours": self.logged_hours,
            "projects": [project.to_dict() for project in self.projects],
        }


class UtilizationCalculator:
    """Sums time entries and compares them with pro-rated capacity."""

    def __init__(self, store: ResourceRepository, capacity: CapacityService):
        self.store = store
        self.capacity = capacity

    def capacity_hours(self, user_id: str, start: date, end: date) -> float:
        """Capacity over [start, end), partial weeks pro-rated by working days."""
        profile = self.capacity.profile_for(user_id)
        return self.capacity.prorate_weeks(
            profile,
            start,
            end,
            lambda week: self.capacity.weekly_total_hours(profile, week),
        )

    def planned_hours_by_project(self, user_id: str, start: date, end: date) -> dict[str, float]:
        """Allocated hours per project over [start, end).

        Allocations are weekly, so a week only partly inside the range counts
        the same working-day share used for capacity.
        """
        profile = self.capacity.profile_for(user_id)
        planned: dict[str, float] = defaultdict(float)
        for week in weeks_overlapping(start, end):
            allocations = self.store.get_allocations(user_id, week)
            if not allocations:
                continue
            share = self.capacity.week_share(profile, week, start, end)
            for allocation in allocations:
                planned[allocation.project_id] += allocation.allocated_hours * share
        return planned

    def get_resource_utilization(self, user_id: str, start: date, end: date) -> ResourceUtilization:
        """Billable/non-billable hours, planned hours and utilization over [start, end).

        The per-project breakdown lists every project the user has allocations
        or project-tagged time entries for in the range.

        Raises:
            ValidationError: If the range is empty or inverted
            NotFoundError: If the user does not exist
        """
        validate_range(start, end)
        self.store.get_user(user_id)

        billable = 0.0
        non_billable = 0.0
        actual: dict[str, float] = defaultdict(float)
        for entry in self.store.get_time_entries(user_id, start, end):
            if entry.billable:
                billable += entry.duration_hours
            else:
                non_billable += entry.duration_hours
            if entry.project_id is not None:
                actual[entry.project_id] += entry.duration_hours

        planned = self.planned_hours_by_project(user_id, start, end)
        projects = tuple(
            ProjectUtilization(
                project_id=project_id,
                planned_hours=round(planned.get(project_id, 0.0), 2),
                actual_hours=actual.get(project_id, 0.0),
            )
            for project_id in sorted(planned.keys() | actual.keys())
        )

        utilization = ResourceUtilization(
            user_id=user_id,
            start=start,
            end=end,
            billable_hours=billable,
            non_billable_hours=non_billable,
            capacity_hours=self.capacity_hours(user_id, start, end),
            planned_hours=sum(planned.values()),
            projects=projects,
        )
        logger.debug(
            f"User '{user_id}' {start}..{end}: logged {utilization.logged_hours:g}h "
            f"of {utilization.capacity_hours:g}h, planned {utilization.planned_hours:g}h"
        )
        return utilization
