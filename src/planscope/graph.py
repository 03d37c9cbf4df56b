"""Graph generation for planscope schedules."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from .models import DependencyType

if TYPE_CHECKING:
    from .models import Task
    from .scheduler.core import CriticalPathResult

CRITICAL_FILL = "mistyrose"
CRITICAL_EDGE = "red"
COMPLETED_FILL = "lightgrey"
DEFAULT_FILL = "white"

LINK_LABELS = {
    DependencyType.START_TO_START: "SS",
    DependencyType.FINISH_TO_FINISH: "FF",
    DependencyType.START_TO_FINISH: "SF",
}


class GraphView(Enum):
    """Types of graph views available."""

    ALL = "all"
    CRITICAL_PATH = "critical-path"


class GraphGenerator:
    """Generate schedule graphs in DOT format."""

    def __init__(self, result: CriticalPathResult):
        """Initialize with a computed schedule.

        Args:
            result: Outcome of a critical path computation
        """
        self.result = result
        self.schedule = result.schedule
        self.tasks = {task.id: task for task in result.tasks}

    def generate(self, view: GraphView = GraphView.ALL) -> str:
        """Generate a DOT graph based on the specified view."""
        if view == GraphView.ALL:
            return self._generate(self.schedule.topological_order, "Schedule")
        if view == GraphView.CRITICAL_PATH:
            return self._generate(self.schedule.critical_chain, "CriticalPath")
        raise ValueError(f"Unknown view: {view}")

    def _generate(self, task_ids: list[str], name: str) -> str:
        included = set(task_ids)
        lines = [f"digraph {name} {{"]
        lines.append("  rankdir=LR;")
        lines.append("  node [shape=box, style=filled];")
        lines.append(f'  label="{self._escape_label(self._title())}";')
        lines.append("")

        for task_id in task_ids:
            lines.append(f"  {self._format_node(self.tasks[task_id])}")
        lines.append("")

        # Edges run predecessor -> successor; non finish-to-start links are labelled
        lines.append("  // Dependencies")
        for task_id in task_ids:
            for dep_id in sorted(self.tasks[task_id].dependencies):
                if dep_id in included:
                    lines.append(f"  {self._format_edge(dep_id, task_id)}")

        lines.append("}")
        return "\n".join(lines)

    def _title(self) -> str:
        project = self.result.project
        end = self.schedule.projected_end_date
        title = project.name or project.id
        if end is None:
            return title
        return f"{title} (ends {end.isoformat()}, {self.schedule.project_duration} working days)"

    def _escape_label(self, label: str) -> str:
        """Escape special characters in DOT labels."""
        return label.replace('"', '\\"').replace("\n", "\\n")

    def _format_node(self, task: Task) -> str:
        metrics = self.schedule.tasks[task.id]
        label_lines = [task.title or task.id]
        if metrics.duration_days > 0:
            label_lines.append(
                f"{metrics.earliest_start.isoformat()} - {metrics.earliest_finish.isoformat()}"
            )
        else:
            label_lines.append(metrics.earliest_start.isoformat())
        label_lines.append(f"slack {metrics.slack}d")
        label = self._escape_label("\n".join(label_lines))

        if task.is_completed:
            fill = COMPLETED_FILL
        elif metrics.is_critical:
            fill = CRITICAL_FILL
        else:
            fill = DEFAULT_FILL

        attrs = [f'label="{label}"', f'fillcolor="{fill}"']
        if metrics.is_critical:
            attrs.append(f'color="{CRITICAL_EDGE}"')
            attrs.append("penwidth=2")
        return f'"{task.id}" [{", ".join(attrs)}];'

    def _format_edge(self, from_id: str, to_id: str) -> str:
        attrs: list[str] = []
        link = self.tasks[to_id].dependency_type
        if link in LINK_LABELS:
            attrs.append(f'label="{LINK_LABELS[link]}"')
        if self.schedule.tasks[from_id].is_critical and self.schedule.tasks[to_id].is_critical:
            attrs.append(f'color="{CRITICAL_EDGE}"')
            attrs.append("penwidth=2")
        if attrs:
            return f'"{from_id}" -> "{to_id}" [{", ".join(attrs)}];'
        return f'"{from_id}" -> "{to_id}";'
