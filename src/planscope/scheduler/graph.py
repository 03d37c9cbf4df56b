"""Task dependency graph construction and validation.

The graph is built purely from in-memory Task records. Edges run from a
predecessor to its successors; the link type is stored on the successor.
Building a graph either succeeds with a validated, acyclic structure and a
topological order, or raises before anything is returned.
"""

from __future__ import annotations

import heapq
from collections.abc import Callable, Iterable

from planscope.exceptions import (
    CyclicDependencyError,
    InvalidDependencyError,
    ValidationError,
)
from planscope.logger import get_logger
from planscope.models import Task

logger = get_logger(__name__)

_WHITE = 0  # Not visited
_GRAY = 1  # On the current DFS path
_BLACK = 2  # Fully explored

ProjectLookup = Callable[[str], str | None]


class TaskGraph:
    """Validated DAG of a single project's tasks."""

    def __init__(
        self,
        project_id: str,
        tasks: dict[str, Task],
        successors: dict[str, list[str]],
        predecessors: dict[str, list[str]],
        order: list[str],
    ):
        self.project_id = project_id
        self.tasks = tasks
        self._successors = successors
        self._predecessors = predecessors
        self.topological_order = order

    @classmethod
    def build(
        cls,
        project_id: str,
        tasks: Iterable[Task],
        locate_task: ProjectLookup | None = None,
    ) -> TaskGraph:
        """Build and validate the dependency graph for a project.

        Args:
            project_id: Project the tasks belong to
            tasks: Every task of the project
            locate_task: Optional lookup returning the project owning a task id,
                used to give a precise message for cross-project references

        Raises:
            ValidationError: If a task belongs to another project or ids repeat
            InvalidDependencyError: If a dependency does not resolve within the project
            CyclicDependencyError: If the dependencies contain a cycle
        """
        task_map: dict[str, Task] = {}
        for task in tasks:
            if task.project_id != project_id:
                raise ValidationError(
                    f"Task '{task.id}' belongs to project '{task.project_id}', not '{project_id}'"
                )
            if task.id in task_map:
                raise ValidationError(f"Duplicate task id '{task.id}' in project '{project_id}'")
            task_map[task.id] = task

        successors: dict[str, list[str]] = {task_id: [] for task_id in task_map}
        predecessors: dict[str, list[str]] = {task_id: [] for task_id in task_map}

        for task_id in sorted(task_map):
            for dep_id in sorted(task_map[task_id].dependencies):
                if dep_id == task_id:
                    raise CyclicDependencyError([task_id, task_id])
                if dep_id not in task_map:
                    owner = locate_task(dep_id) if locate_task else None
                    reason = (
                        f"belongs to project '{owner}'" if owner else "does not exist"
                    )
                    raise InvalidDependencyError(task_id, dep_id, reason)
                successors[dep_id].append(task_id)
                predecessors[task_id].append(dep_id)

        cycle = _find_cycle(successors)
        if cycle:
            raise CyclicDependencyError(cycle)

        order = _kahn_order(successors, predecessors)
        logger.checks(
            f"Project '{project_id}': dependency graph valid "
            f"({len(task_map)} tasks, {sum(len(s) for s in successors.values())} edges)"
        )
        return cls(project_id, task_map, successors, predecessors, order)

    def successors(self, task_id: str) -> list[str]:
        return self._successors[task_id]

    def predecessors(self, task_id: str) -> list[str]:
        return self._predecessors[task_id]

    def sources(self) -> list[str]:
        """Tasks without predecessors, in topological order."""
        return [t for t in self.topological_order if not self._predecessors[t]]

    def sinks(self) -> list[str]:
        """Tasks without successors, in topological order."""
        return [t for t in self.topological_order if not self._successors[t]]

    def __len__(self) -> int:
        return len(self.tasks)


def _find_cycle(successors: dict[str, list[str]]) -> list[str] | None:
    """Three-color DFS; return the first cycle found (first id repeated at the end)."""
    color = dict.fromkeys(successors, _WHITE)

    for root in sorted(successors):
        if color[root] != _WHITE:
            continue

        color[root] = _GRAY
        path = [root]
        stack = [(root, iter(successors[root]))]

        while stack:
            node, children = stack[-1]
            child = next(children, None)

            if child is None:
                color[node] = _BLACK
                stack.pop()
                path.pop()
                continue

            if color[child] == _GRAY:
                # Back edge: the cycle is the path segment starting at child
                start = path.index(child)
                return [*path[start:], child]

            if color[child] == _WHITE:
                color[child] = _GRAY
                path.append(child)
                stack.append((child, iter(successors[child])))

    return None


def _kahn_order(
    successors: dict[str, list[str]], predecessors: dict[str, list[str]]
) -> list[str]:
    """Kahn's algorithm; ties broken by task id so the order is deterministic."""
    in_degree = {task_id: len(preds) for task_id, preds in predecessors.items()}
    ready = [task_id for task_id, degree in in_degree.items() if degree == 0]
    heapq.heapify(ready)
    order: list[str] = []

    while ready:
        task_id = heapq.heappop(ready)
        order.append(task_id)
        for succ_id in successors[task_id]:
            in_degree[succ_id] -= 1
            if in_degree[succ_id] == 0:
                heapq.heappush(ready, succ_id)

    if len(order) != len(successors):
        raise CyclicDependencyError(sorted(set(successors) - set(order)))

    return order
