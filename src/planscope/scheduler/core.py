"""Core dataclasses for critical path results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from planscope.models import Project, Task
    from planscope.rollup import ProjectProgress


def _default_str_list() -> list[str]:
    return []


@dataclass(frozen=True)
class TaskSchedule:
    """CPM metrics for one task.

    Offsets are working days from the project origin; finish offsets are
    exclusive. Dates are the corresponding calendar days, with finish dates
    naming the last working day of the task.
    """

    task_id: str
    duration_days: int  # Effective duration (actual finish for completed tasks)
    es: int
    ef: int
    ls: int
    lf: int
    earliest_start: date
    earliest_finish: date
    latest_start: date
    latest_finish: date

    @property
    def slack(self) -> int:
        return self.ls - self.es

    @property
    def is_critical(self) -> bool:
        return self.slack == 0


@dataclass
class ProjectSchedule:
    """Result of one critical path computation for a project."""

    project_id: str
    origin: date  # First working day of the project
    tasks: dict[str, TaskSchedule]
    topological_order: list[str]
    project_duration: int  # Working days, max EF
    projected_end_date: date | None
    schedule_variance_days: int | None = None  # Working days behind plan (negative = ahead)
    critical_chain: list[str] = field(default_factory=_default_str_list)

    @property
    def critical_task_ids(self) -> list[str]:
        """Every zero-slack task, in topological order."""
        return [t for t in self.topological_order if self.tasks[t].is_critical]

    @property
    def critical_chain_start(self) -> int:
        """Offset at which the critical chain begins.

        Non-zero when the first task of the chain has a start date later than
        the project start. For finish-to-start chains this offset plus the
        summed durations of the chain equals the project duration.
        """
        if not self.critical_chain:
            return 0
        return self.tasks[self.critical_chain[0]].es

    def to_dict(self) -> dict[str, Any]:
        return {
            "projectId": self.project_id,
            "projectDuration": self.project_duration,
            "projectedEndDate": _iso(self.projected_end_date),
            "scheduleVarianceDays": self.schedule_variance_days,
            "criticalTasks": self.critical_task_ids,
            "criticalPath": list(self.critical_chain),
            "criticalPathStart": self.critical_chain_start,
        }


@dataclass
class CriticalPathResult:
    """What calculate_critical_path hands back to callers."""

    project: Project  # With the updated projected end date and progress
    tasks: list[Task]  # Updated tasks, in topological order
    schedule: ProjectSchedule
    progress: ProjectProgress

    def to_dict(self) -> dict[str, Any]:
        data = self.schedule.to_dict()
        data["percentComplete"] = round(self.project.percent_complete, 2)
        data["tasks"] = [task.to_dict() for task in self.tasks]
        return data


def _iso(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None
