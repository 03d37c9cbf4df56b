"""Team workload: per-user capacity and utilization for one week, classified."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any

from planscope.calendar import DAYS_PER_WEEK
from planscope.config import ConcurrencySettings, WorkloadBasis, WorkloadSettings
from planscope.logger import checks_enabled, get_logger
from planscope.models import User

from .capacity import CapacityService, ResourceCapacity, require_week_start
from .pool import fan_out
from .utilization import ResourceUtilization, UtilizationCalculator

if TYPE_CHECKING:
    from planscope.store import ResourceRepository

logger = get_logger(__name__)


class WorkloadClass(str, Enum):
    UNDER = "under-allocated"
    BALANCED = "balanced"
    OVER = "over-allocated"


@dataclass(frozen=True)
class MemberWorkload:
    """One user's week: capacity, logged time and the load being classified."""

    user_id: str
    user_name: str
    capacity: ResourceCapacity
    utilization: ResourceUtilization
    load_ratio: float  # Hours on the configured basis / total capacity hours
    classification: WorkloadClass

    @property
    def utilization_percent(self) -> float:
        return self.load_ratio * 100

    def to_dict(self) -> dict[str, Any]:
        percent = self.utilization_percent
        return {
            "userId": self.user_id,
            "userName": self.user_name,
            "capacity": self.capacity.to_dict(),
            "utilization": self.utilization.to_dict(),
            "utilizationPercent": round(percent, 2) if math.isfinite(percent) else None,
            "classification": self.classification.value,
        }


@dataclass(frozen=True)
class TeamWorkload:
    """Workload of an organization's assignable users for one week."""

    org_id: str
    week_start: date
    members: list[MemberWorkload]

    @property
    def total_members(self) -> int:
        return len(self.members)

    @property
    def average_utilization(self) -> float:
        """Mean utilization percent over members with a finite load."""
        finite = [m.utilization_percent for m in self.members if math.isfinite(m.load_ratio)]
        if not finite:
            return 0.0
        return sum(finite) / len(finite)

    def count(self, classification: WorkloadClass) -> int:
        return sum(1 for m in self.members if m.classification == classification)

    def to_dict(self) -> dict[str, Any]:
        return {
            "orgId": self.org_id,
            "weekStart": self.week_start.isoformat(),
            "totalMembers": self.total_members,
            "averageUtilization": round(self.average_utilization, 2),
            "overAllocatedMembers": self.count(WorkloadClass.OVER),
            "underAllocatedMembers": self.count(WorkloadClass.UNDER),
            "members": [m.to_dict() for m in self.members],
        }


def classify(ratio: float, settings: WorkloadSettings) -> WorkloadClass:
    """Place a load ratio in the under / balanced / over bands.

    Both thresholds belong to the balanced band.
    """
    if ratio > settings.over_threshold:
        return WorkloadClass.OVER
    if ratio < settings.under_threshold:
        return WorkloadClass.UNDER
    return WorkloadClass.BALANCED


def load_ratio(hours: float, capacity_hours: float) -> float:
    """hours / capacity; a user with no capacity is idle at 0 hours, unbounded otherwise."""
    if capacity_hours <= 0:
        return 0.0 if hours <= 0 else math.inf
    return hours / capacity_hours


class TeamWorkloadAggregator:
    """Fans out one capacity + utilization computation per assignable user."""

    def __init__(
        self,
        store: ResourceRepository,
        capacity: CapacityService,
        utilization: UtilizationCalculator,
        settings: WorkloadSettings | None = None,
        concurrency: ConcurrencySettings | None = None,
    ):
        self.store = store
        self.capacity = capacity
        self.utilization = utilization
        self.settings = settings or WorkloadSettings()
        self.concurrency = concurrency or ConcurrencySettings()

    def get_team_workload(self, org_id: str, week_start: date) -> TeamWorkload:
        """Classify every active, assignable user of ``org_id`` for one week.

        Members are sorted by utilization percent descending, then user id.

        Raises:
            ValidationError: If week_start is not a Monday
        """
        require_week_start(week_start)
        users = sorted(self.store.list_assignable_users(org_id), key=lambda u: u.id)

        members = fan_out(
            lambda user: self._member(user, week_start),
            users,
            self.concurrency.max_workers,
        )
        members.sort(key=lambda m: (-m.load_ratio, m.user_id))

        workload = TeamWorkload(org_id=org_id, week_start=week_start, members=members)
        logger.info(
            f"Org '{org_id}' week {week_start}: {workload.total_members} members, "
            f"{workload.count(WorkloadClass.OVER)} over-allocated, "
            f"{workload.count(WorkloadClass.UNDER)} under-allocated"
        )
        return workload

    def _member(self, user: User, week_start: date) -> MemberWorkload:
        week_end = week_start + timedelta(days=DAYS_PER_WEEK)
        capacity = self.capacity.get_resource_capacity(user.id, week_start)
        utilization = self.utilization.get_resource_utilization(user.id, week_start, week_end)

        if self.settings.basis == WorkloadBasis.ACTUAL:
            hours = utilization.logged_hours
        else:
            hours = capacity.allocated_hours
        ratio = load_ratio(hours, capacity.total_hours)
        classification = classify(ratio, self.settings)

        if checks_enabled():
            logger.checks(
                f"User '{user.id}': {hours:g}h of {capacity.total_hours:g}h "
                f"({self.settings.basis.value}) -> {classification.value}"
            )
        return MemberWorkload(
            user_id=user.id,
            user_name=user.name or user.email,
            capacity=capacity,
            utilization=utilization,
            load_ratio=ratio,
            classification=classification,
        )
