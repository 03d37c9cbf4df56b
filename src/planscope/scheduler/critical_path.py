"""Forward/backward critical path passes."""

from __future__ import annotations

from datetime import date

from planscope.calendar import WorkCalendar
from planscope.config import SchedulingSettings
from planscope.logger import debug_enabled, get_logger
from planscope.models import DependencyType, Project, Task

from .core import ProjectSchedule, TaskSchedule
from .graph import TaskGraph

logger = get_logger(__name__)


class CriticalPathCalculator:
    """Computes ES/EF/LS/LF and slack over a validated task graph.

    The computation is a pure function of the graph, task durations,
    completion state and calendar, so repeated runs on unchanged input give
    identical results.
    """

    def __init__(self, calendar: WorkCalendar, settings: SchedulingSettings | None = None):
        self.calendar = calendar
        self.settings = settings or SchedulingSettings()

    def compute(self, project: Project, graph: TaskGraph) -> ProjectSchedule:
        """Run both passes and derive project-level dates.

        Args:
            project: Project supplying the start date and planned end date
            graph: Validated graph of the project's tasks

        Returns:
            ProjectSchedule with per-task metrics and the critical set
        """
        origin = self.calendar.next_working_day(project.start_date)

        es, ef = self._forward_pass(project, graph, origin)
        project_end = max(ef.values(), default=0)
        ls, lf = self._backward_pass(graph, es, ef, project_end)

        tasks: dict[str, TaskSchedule] = {}
        for task_id in graph.topological_order:
            tasks[task_id] = TaskSchedule(
                task_id=task_id,
                duration_days=ef[task_id] - es[task_id],
                es=es[task_id],
                ef=ef[task_id],
                ls=ls[task_id],
                lf=lf[task_id],
                earliest_start=self.calendar.day_at(origin, es[task_id]),
                earliest_finish=self._finish_date(origin, es[task_id], ef[task_id]),
                latest_start=self.calendar.day_at(origin, ls[task_id]),
                latest_finish=self._finish_date(origin, ls[task_id], lf[task_id]),
            )

        projected_end = max((t.earliest_finish for t in tasks.values()), default=None)
        variance = None
        if projected_end is not None and project.planned_end_date is not None:
            variance = self.calendar.working_days_between(project.planned_end_date, projected_end)

        schedule = ProjectSchedule(
            project_id=project.id,
            origin=origin,
            tasks=tasks,
            topological_order=list(graph.topological_order),
            project_duration=project_end,
            projected_end_date=projected_end,
            schedule_variance_days=variance,
        )
        schedule.critical_chain = _trace_critical_chain(graph, schedule)
        return schedule

    def _forward_pass(
        self, project: Project, graph: TaskGraph, origin: date
    ) -> tuple[dict[str, int], dict[str, int]]:
        es: dict[str, int] = {}
        ef: dict[str, int] = {}

        for task_id in graph.topological_order:
            task = graph.tasks[task_id]
            preds = graph.predecessors(task_id)
            duration = self._planned_days(task)

            start = 0
            finish_floor = 0
            if preds:
                link = task.dependency_type
                for p in preds:
                    start = max(start, _earliest_start(link, es[p], ef[p], duration))
                    finish_floor = max(finish_floor, _earliest_finish(link, es[p], ef[p]))
            elif task.start_date is not None and task.start_date > project.start_date:
                start = max(0, self.calendar.offset_of(origin, task.start_date))

            es[task_id] = start
            ef[task_id] = max(self._effective_finish(task, origin, start), finish_floor)
            if debug_enabled():
                logger.debug(f"  forward {task_id}: ES={es[task_id]} EF={ef[task_id]}")

        return es, ef

    def _planned_days(self, task: Task) -> int:
        return task.working_days(self.settings.hours_per_day, self.settings.default_duration_days)

    def _effective_finish(self, task: Task, origin: date, start: int) -> int:
        """EF for a task; completed tasks propagate their actual finish date."""
        if task.is_completed and task.actual_finish_date is not None:
            actual = self.calendar.finish_offset(origin, task.actual_finish_date)
            # A recorded finish earlier than the computed start is held at the start
            return max(actual, start)
        return start + self._planned_days(task)

    def _backward_pass(
        self,
        graph: TaskGraph,
        es: dict[str, int],
        ef: dict[str, int],
        project_end: int,
    ) -> tuple[dict[str, int], dict[str, int]]:
        ls: dict[str, int] = {}
        lf: dict[str, int] = {}

        for task_id in reversed(graph.topological_order):
            duration = ef[task_id] - es[task_id]
            finish = project_end
            for s in graph.successors(task_id):
                link = graph.tasks[s].dependency_type
                finish = min(finish, _latest_finish(link, ls[s], lf[s], duration))
            lf[task_id] = finish
            ls[task_id] = finish - duration
            if debug_enabled():
                logger.debug(f"  backward {task_id}: LS={ls[task_id]} LF={lf[task_id]}")

        return ls, lf

    def _finish_date(self, origin: date, start: int, finish: int) -> date:
        if finish > start:
            return self.calendar.day_at(origin, finish - 1)
        return self.calendar.day_at(origin, start)


def _earliest_start(link: DependencyType, pred_es: int, pred_ef: int, duration: int) -> int:
    """Earliest start one predecessor allows a task of ``duration`` days."""
    if link is DependencyType.START_TO_START:
        return pred_es
    if link is DependencyType.FINISH_TO_FINISH:
        return pred_ef - duration
    if link is DependencyType.START_TO_FINISH:
        return pred_es - duration
    return pred_ef


def _earliest_finish(link: DependencyType, pred_es: int, pred_ef: int) -> int:
    """Earliest finish one predecessor imposes (0 when the link only constrains the start)."""
    if link is DependencyType.FINISH_TO_FINISH:
        return pred_ef
    if link is DependencyType.START_TO_FINISH:
        return pred_es
    return 0


def _latest_finish(link: DependencyType, succ_ls: int, succ_lf: int, duration: int) -> int:
    """Latest finish a successor allows its predecessor of ``duration`` days."""
    if link is DependencyType.START_TO_START:
        return succ_ls + duration
    if link is DependencyType.FINISH_TO_FINISH:
        return succ_lf
    if link is DependencyType.START_TO_FINISH:
        return succ_lf + duration
    return succ_ls


def _drives(link: DependencyType, pred: TaskSchedule, task: TaskSchedule) -> bool:
    """True if the predecessor's link is what fixes the task's early dates."""
    if link is DependencyType.START_TO_START:
        return pred.es == task.es
    if link is DependencyType.FINISH_TO_FINISH:
        return pred.ef == task.ef
    if link is DependencyType.START_TO_FINISH:
        return pred.es == task.ef
    return pred.ef == task.es


def _trace_critical_chain(graph: TaskGraph, schedule: ProjectSchedule) -> list[str]:
    """Walk one zero-slack chain backward from a critical task finishing last.

    Tasks without successors are preferred as the end of the chain. Each step
    follows the first critical predecessor whose link drives the current task.
    """
    ends = [
        t
        for t in schedule.topological_order
        if schedule.tasks[t].is_critical and schedule.tasks[t].ef == schedule.project_duration
    ]
    if not ends:
        return []
    ends.sort(key=lambda t: bool(graph.successors(t)))

    chain = [ends[0]]
    current = ends[0]
    while True:
        link = graph.tasks[current].dependency_type
        driving = [
            p
            for p in sorted(graph.predecessors(current))
            if schedule.tasks[p].is_critical
            and _drives(link, schedule.tasks[p], schedule.tasks[current])
        ]
        if not driving:
            break
        current = driving[0]
        chain.append(current)

    chain.reverse()
    return chain
