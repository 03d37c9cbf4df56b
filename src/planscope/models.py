"""Data models for planscope."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from .calendar import is_week_start
from .exceptions import ValidationError

PERCENT_COMPLETE = 100.0


class TaskState(str, Enum):
    """Lifecycle of a task, derived from percent complete."""

    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class DependencyType(str, Enum):
    """How a task is linked to its predecessors."""

    FINISH_TO_START = "finish-to-start"  # Start after the predecessor finishes
    START_TO_START = "start-to-start"  # Start no earlier than the predecessor starts
    FINISH_TO_FINISH = "finish-to-finish"  # Finish no earlier than the predecessor finishes
    START_TO_FINISH = "start-to-finish"  # Finish no earlier than the predecessor starts


def _default_dependency_set() -> set[str]:
    return set()


@dataclass
class Task:
    """A project task and its links to predecessor tasks.

    The schedule fields (earliest_start through is_critical) are written only
    by the critical path calculator.
    """

    id: str
    project_id: str
    title: str = ""
    estimated_hours: float | None = None
    duration_days: int | None = None  # Explicit multi-day duration, wins over hours
    dependencies: set[str] = field(default_factory=_default_dependency_set)
    dependency_type: DependencyType = DependencyType.FINISH_TO_START  # Applies to every link
    assigned_to: str | None = None
    start_date: date | None = None
    due_date: date | None = None
    percent_complete: float = 0.0
    actual_finish_date: date | None = None

    earliest_start: date | None = None
    earliest_finish: date | None = None
    latest_start: date | None = None
    latest_finish: date | None = None
    slack: int | None = None  # Working days
    is_critical: bool = False

    @property
    def state(self) -> TaskState:
        if self.percent_complete >= PERCENT_COMPLETE:
            return TaskState.COMPLETED
        if self.percent_complete > 0:
            return TaskState.IN_PROGRESS
        return TaskState.NOT_STARTED

    @property
    def is_started(self) -> bool:
        return self.state != TaskState.NOT_STARTED

    @property
    def is_completed(self) -> bool:
        return self.state == TaskState.COMPLETED

    def working_days(self, hours_per_day: float, default_days: int) -> int:
        """Duration in whole working days.

        Explicit duration_days wins; otherwise estimated hours are rounded up to
        whole days. Tasks with neither use the configured default.
        """
        if self.duration_days is not None:
            return self.duration_days
        if self.estimated_hours is not None:
            return math.ceil(self.estimated_hours / hours_per_day)
        return default_days

    def to_dict(self) -> dict[str, Any]:
        """JSON-shaped representation with camelCase keys."""
        return {
            "id": self.id,
            "projectId": self.project_id,
            "title": self.title,
            "estimatedHours": self.estimated_hours,
            "durationDays": self.duration_days,
            "dependencies": sorted(self.dependencies),
            "dependencyType": self.dependency_type.value,
            "assignedTo": self.assigned_to,
            "startDate": _iso(self.start_date),
            "dueDate": _iso(self.due_date),
            "percentComplete": self.percent_complete,
            "actualFinishDate": _iso(self.actual_finish_date),
            "earliestStart": _iso(self.earliest_start),
            "earliestFinish": _iso(self.earliest_finish),
            "latestStart": _iso(self.latest_start),
            "latestFinish": _iso(self.latest_finish),
            "slack": self.slack,
            "isCritical": self.is_critical,
        }


@dataclass
class Project:
    """A project owned by an organization.

    The engine writes only projected_end_date, percent_complete and
    schedule_variance_days.
    """

    id: str
    org_id: str
    start_date: date
    name: str = ""
    planned_end_date: date | None = None
    budget: float | None = None
    projected_end_date: date | None = None
    percent_complete: float = 0.0
    schedule_variance_days: int | None = None  # Positive = behind plan


@dataclass
class User:
    """A member of an organization's resource roster."""

    id: str
    org_id: str
    name: str = ""
    email: str = ""
    is_active: bool = True
    is_assignable: bool = True


@dataclass
class ResourceAllocation:
    """Planned commitment of a user's hours to a project for one week."""

    user_id: str
    project_id: str
    week_start: date
    allocated_hours: float
    task_id: str | None = None

    def __post_init__(self) -> None:
        if not is_week_start(self.week_start):
            raise ValidationError(
                f"Allocation week_start {self.week_start} for user '{self.user_id}' "
                "is not a Monday"
            )
        if self.allocated_hours < 0:
            raise ValidationError(
                f"Allocation for user '{self.user_id}' has negative hours "
                f"({self.allocated_hours})"
            )


@dataclass
class TimeEntry:
    """Actual logged time, consumed read-only from time tracking."""

    user_id: str
    entry_date: date
    duration_hours: float
    billable: bool = False
    project_id: str | None = None


class TimeOffPeriod(BaseModel):
    """A time-off range for a resource (inclusive on both ends)."""

    start: date
    end: date
    approved: bool = True

    @model_validator(mode="after")
    def validate_end_after_start(self) -> TimeOffPeriod:
        """Ensure end date is not before start date."""
        if self.end < self.start:
            raise ValueError("end date must not be before start date")
        return self

    def covers(self, day: date) -> bool:
        return self.start <= day <= self.end


class WeeklyCapacityProfile(BaseModel):
    """Standard calendar and time off for one user."""

    user_id: str
    hours_per_day: float = Field(default=8.0, ge=0)
    working_days: list[int] = Field(default_factory=lambda: [0, 1, 2, 3, 4])
    time_off: list[TimeOffPeriod] = Field(default_factory=list[TimeOffPeriod])

    @field_validator("working_days")
    @classmethod
    def validate_working_days(cls, v: list[int]) -> list[int]:
        """Ensure working days are weekday numbers."""
        for day in v:
            if day < 0 or day > 6:  # noqa: PLR2004 - weekday range
                raise ValueError(f"working day must be between 0 and 6, got {day}")
        return sorted(set(v))

    def is_on_leave(self, day: date) -> bool:
        """True if any approved time off covers ``day``."""
        return any(period.approved and period.covers(day) for period in self.time_off)


def _iso(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None
