"""High-level scheduling service.

Every operation that can change a project's schedule runs under that
project's lock and follows the same shape: read the project and its tasks,
apply the mutation to in-memory copies, rebuild and validate the graph,
recompute the full schedule, then persist project and tasks in one batch.
Nothing is written unless every step before the write succeeded.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
from typing import TYPE_CHECKING, Any

from planscope.calendar import FixedHolidayCalendar, WorkCalendar
from planscope.config import PlanscopeConfig
from planscope.exceptions import ComputationError, NotFoundError, ValidationError
from planscope.logger import changes_enabled, get_logger
from planscope.models import PERCENT_COMPLETE, DependencyType, Project, Task
from planscope.rollup import HealthSink, LoggingHealthSink, ProgressRollup

from .core import CriticalPathResult
from .critical_path import CriticalPathCalculator
from .graph import TaskGraph
from .locks import KeyedLock

if TYPE_CHECKING:
    from planscope.store import ProjectRepository

logger = get_logger(__name__)

# Task fields callers may change through update_task
UPDATABLE_TASK_FIELDS = frozenset(
    {"title", "estimated_hours", "duration_days", "start_date", "due_date", "assigned_to"}
)

# Lock table used by every service that is not given its own
_SHARED_LOCKS = KeyedLock()


def build_calendar(config: PlanscopeConfig) -> WorkCalendar:
    """Create the scheduling calendar described by the configuration."""
    return WorkCalendar(
        working_weekdays=config.scheduling.working_weekdays,
        holidays=FixedHolidayCalendar(config.scheduling.holidays),
    )


class SchedulingService:
    """Critical path recompute and task-graph mutations for projects."""

    def __init__(  # noqa: PLR0913 - collaborators are injected
        self,
        store: ProjectRepository,
        config: PlanscopeConfig | None = None,
        *,
        calendar: WorkCalendar | None = None,
        health_sink: HealthSink | None = None,
        locks: KeyedLock | None = None,
        today: Callable[[], date] | None = None,
    ):
        """Initialize the service.

        Args:
            store: Task/project persistence
            config: Optional configuration (defaults apply otherwise)
            calendar: Optional calendar overriding the configured one
            health_sink: Receiver of progress signals (defaults to logging them)
            locks: Optional per-project lock table (defaults to one shared by
                all services in the process)
            today: Clock used to stamp completion dates (defaults to date.today)
        """
        self.store = store
        self.config = config or PlanscopeConfig()
        self.calendar = calendar or build_calendar(self.config)
        self.calculator = CriticalPathCalculator(self.calendar, self.config.scheduling)
        self.rollup = ProgressRollup(self.config.scheduling)
        self.health_sink = health_sink or LoggingHealthSink()
        self.locks = locks or _SHARED_LOCKS
        self.today = today or date.today

    # -- operations ----------------------------------------------------------

    def calculate_critical_path(self, project_id: str) -> CriticalPathResult:
        """Recompute and persist the schedule of a project."""
        with self.locks.hold(project_id):
            project = self.store.get_project(project_id)
            tasks = self.store.get_project_tasks(project_id)
            return self._recompute(project, tasks)

    def add_dependency(
        self,
        task_id: str,
        predecessor_id: str,
        dependency_type: DependencyType | None = None,
    ) -> CriticalPathResult:
        """Make ``task_id`` depend on ``predecessor_id``.

        The link type belongs to the task and applies to all of its
        predecessors; passing ``dependency_type`` replaces it, otherwise the
        task keeps its current type.

        Raises:
            CyclicDependencyError: If the new edge closes a cycle
            InvalidDependencyError: If the predecessor is missing or in another project
        """
        project_id = self._project_of(task_id)
        with self.locks.hold(project_id):
            project = self.store.get_project(project_id)
            tasks = self.store.get_project_tasks(project_id)
            task = _find(tasks, task_id)
            if predecessor_id in task.dependencies:
                logger.checks(f"Task '{task_id}' already depends on '{predecessor_id}'")
            task.dependencies.add(predecessor_id)
            if dependency_type is not None and dependency_type != task.dependency_type:
                logger.changes(
                    f"Task '{task_id}' links to its predecessors {dependency_type.value}"
                )
                task.dependency_type = dependency_type
            return self._recompute(project, tasks)

    def remove_dependency(self, task_id: str, predecessor_id: str) -> CriticalPathResult:
        """Drop the dependency of ``task_id`` on ``predecessor_id``."""
        project_id = self._project_of(task_id)
        with self.locks.hold(project_id):
            project = self.store.get_project(project_id)
            tasks = self.store.get_project_tasks(project_id)
            task = _find(tasks, task_id)
            if predecessor_id not in task.dependencies:
                raise ValidationError(f"Task '{task_id}' does not depend on '{predecessor_id}'")
            task.dependencies.discard(predecessor_id)
            return self._recompute(project, tasks)

    def update_task(self, task_id: str, **changes: Any) -> CriticalPathResult:
        """Change a task's duration, dates or assignee and recompute.

        Accepted fields: title, estimated_hours, duration_days, start_date,
        due_date, assigned_to.
        """
        unknown = set(changes) - UPDATABLE_TASK_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update task fields: {', '.join(sorted(unknown))}")
        for name in ("estimated_hours", "duration_days"):
            value = changes.get(name)
            if value is not None and value < 0:
                raise ValidationError(f"{name} must not be negative, got {value}")

        project_id = self._project_of(task_id)
        with self.locks.hold(project_id):
            project = self.store.get_project(project_id)
            tasks = self.store.get_project_tasks(project_id)
            task = _find(tasks, task_id)
            for name, value in changes.items():
                setattr(task, name, value)
            return self._recompute(project, tasks)

    def update_progress(
        self,
        task_id: str,
        percent_complete: float,
        actual_finish_date: date | None = None,
    ) -> CriticalPathResult:
        """Record task progress; completing a task stamps its actual finish date.

        Progress only moves forward: not-started -> in-progress -> completed.
        The actual finish date never changes once set.
        """
        if percent_complete < 0 or percent_complete > PERCENT_COMPLETE:
            raise ValidationError(
                f"percent_complete must be between 0 and 100, got {percent_complete}"
            )
        if actual_finish_date is not None and percent_complete < PERCENT_COMPLETE:
            raise ValidationError("actual_finish_date can only be set when completing a task")

        project_id = self._project_of(task_id)
        with self.locks.hold(project_id):
            project = self.store.get_project(project_id)
            tasks = self.store.get_project_tasks(project_id)
            task = _find(tasks, task_id)

            if percent_complete < task.percent_complete:
                raise ValidationError(
                    f"Task '{task_id}' is at {task.percent_complete}%; progress cannot "
                    f"decrease to {percent_complete}"
                )
            if (
                actual_finish_date is not None
                and task.actual_finish_date is not None
                and actual_finish_date != task.actual_finish_date
            ):
                raise ValidationError(
                    f"Task '{task_id}' already finished on {task.actual_finish_date}"
                )

            task.percent_complete = percent_complete
            if percent_complete >= PERCENT_COMPLETE and task.actual_finish_date is None:
                task.actual_finish_date = actual_finish_date or self.today()
                logger.changes(f"Task '{task_id}' completed on {task.actual_finish_date}")

            return self._recompute(project, tasks)

    def blocked_tasks(self, project_id: str) -> list[Task]:
        """Unfinished tasks waiting on a predecessor.

        Finish-to-start links wait for the predecessor to complete and
        start-to-start links wait for it to start. Finish-to-finish and
        start-to-finish links only constrain the finish, so they never block.
        """
        tasks = self.store.get_project_tasks(project_id)
        by_id = {task.id: task for task in tasks}
        blocked: list[Task] = []
        for task in sorted(tasks, key=lambda t: t.id):
            if task.is_completed:
                continue
            predecessors = [by_id[dep_id] for dep_id in task.dependencies if dep_id in by_id]
            if any(_blocks(task.dependency_type, pred) for pred in predecessors):
                blocked.append(task)
        return blocked

    # -- internals -----------------------------------------------------------

    def _project_of(self, task_id: str) -> str:
        project_id = self.store.find_task_project(task_id)
        if project_id is None:
            raise NotFoundError(f"Task '{task_id}' not found")
        return project_id

    def _recompute(self, project: Project, tasks: list[Task]) -> CriticalPathResult:
        """Validate, compute and persist. Must be called with the project lock held."""
        graph = TaskGraph.build(project.id, tasks, locate_task=self.store.find_task_project)

        try:
            schedule = self.calculator.compute(project, graph)
        except (KeyError, ValueError, ArithmeticError) as e:
            logger.error(f"Project '{project.id}': critical path traversal failed: {e}")
            raise ComputationError(
                f"Critical path computation failed for project '{project.id}'"
            ) from e

        for task in tasks:
            metrics = schedule.tasks[task.id]
            task.earliest_start = metrics.earliest_start
            task.earliest_finish = metrics.earliest_finish
            task.latest_start = metrics.latest_start
            task.latest_finish = metrics.latest_finish
            task.slack = metrics.slack
            task.is_critical = metrics.is_critical

        progress = self.rollup.compute(project, tasks, schedule)
        self.rollup.apply(project, progress)

        try:
            self.store.write_schedule(project, tasks)
        except Exception as e:
            batch = ", ".join(sorted(task.id for task in tasks))
            logger.error(
                f"Project '{project.id}': schedule write failed for task batch [{batch}]: {e}"
            )
            raise ComputationError(
                f"Failed to persist schedule for project '{project.id}'"
            ) from e

        if changes_enabled():
            logger.changes(
                f"Project '{project.id}': scheduled {len(tasks)} tasks, "
                f"duration {schedule.project_duration} working days, "
                f"projected end {schedule.projected_end_date}, "
                f"critical {schedule.critical_task_ids}"
            )
        self.health_sink.record_progress(progress)

        position = {task_id: i for i, task_id in enumerate(schedule.topological_order)}
        return CriticalPathResult(
            project=project,
            tasks=sorted(tasks, key=lambda t: position[t.id]),
            schedule=schedule,
            progress=progress,
        )


def _blocks(link: DependencyType, predecessor: Task) -> bool:
    if link == DependencyType.FINISH_TO_START:
        return not predecessor.is_completed
    if link == DependencyType.START_TO_START:
        return not predecessor.is_started
    return False


def _find(tasks: list[Task], task_id: str) -> Task:
    for task in tasks:
        if task.id == task_id:
            return task
    raise NotFoundError(f"Task '{task_id}' not found")
