"""Project progress rollup.

After every critical path recompute or task progress update the engine derives
project-level progress and schedule signals and hands them to the platform's
health component. Health scoring itself (green/amber/red) happens there.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Any, Protocol

from .config import SchedulingSettings
from .logger import get_logger
from .models import Project, Task

if TYPE_CHECKING:
    from .scheduler.core import ProjectSchedule

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProjectProgress:
    """Signals handed to the health component."""

    project_id: str
    percent_complete: float
    completed_tasks: int
    total_tasks: int
    projected_end_date: date | None
    planned_end_date: date | None
    schedule_variance_days: int | None  # Working days behind plan (negative = ahead)
    critical_task_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "projectId": self.project_id,
            "percentComplete": round(self.percent_complete, 2),
            "completedTasks": self.completed_tasks,
            "totalTasks": self.total_tasks,
            "projectedEndDate": _iso(self.projected_end_date),
            "plannedEndDate": _iso(self.planned_end_date),
            "scheduleVarianceDays": self.schedule_variance_days,
            "criticalTaskCount": self.critical_task_count,
        }


class HealthSink(Protocol):
    """External project health component."""

    def record_progress(self, progress: ProjectProgress) -> None:
        """Receive fresh progress signals for a project."""
        ...


class LoggingHealthSink:
    """Health sink that only logs the signals (used when no platform sink is wired)."""

    def record_progress(self, progress: ProjectProgress) -> None:
        logger.changes(
            f"Project '{progress.project_id}': {progress.percent_complete:.1f}% complete, "
            f"projected end {progress.projected_end_date}, "
            f"variance {progress.schedule_variance_days} working days"
        )


class ProgressRollup:
    """Derives project progress from task progress and a computed schedule."""

    def __init__(self, settings: SchedulingSettings | None = None):
        self.settings = settings or SchedulingSettings()

    def compute(
        self, project: Project, tasks: list[Task], schedule: ProjectSchedule
    ) -> ProjectProgress:
        """Hours-weighted percent complete plus the schedule's end-date signals."""
        return ProjectProgress(
            project_id=project.id,
            percent_complete=self.percent_complete(tasks),
            completed_tasks=sum(1 for t in tasks if t.is_completed),
            total_tasks=len(tasks),
            projected_end_date=schedule.projected_end_date,
            planned_end_date=project.planned_end_date,
            schedule_variance_days=schedule.schedule_variance_days,
            critical_task_count=len(schedule.critical_task_ids),
        )

    def percent_complete(self, tasks: list[Task]) -> float:
        """Average of task percent complete weighted by task hours.

        Tasks without an hour estimate weigh their duration in days times the
        standard day length. If every weight is zero a plain average is used.
        """
        if not tasks:
            return 0.0

        weights = [self._weight(task) for task in tasks]
        total_weight = sum(weights)
        if total_weight == 0:
            return sum(t.percent_complete for t in tasks) / len(tasks)
        weighted = sum(w * t.percent_complete for w, t in zip(weights, tasks, strict=True))
        return weighted / total_weight

    def apply(self, project: Project, progress: ProjectProgress) -> None:
        """Copy the engine-owned fields onto the project record."""
        project.percent_complete = progress.percent_complete
        project.projected_end_date = progress.projected_end_date
        project.schedule_variance_days = progress.schedule_variance_days

    def _weight(self, task: Task) -> float:
        if task.estimated_hours is not None:
            return task.estimated_hours
        days = task.working_days(self.settings.hours_per_day, self.settings.default_duration_days)
        return days * self.settings.hours_per_day


def _iso(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None
