"""Tests for DOT rendering of computed schedules."""

from __future__ import annotations

from datetime import date

from planscope.graph import GraphGenerator, GraphView
from planscope.models import DependencyType
from planscope.scheduler import SchedulingService


class TestGraphGenerator:
    def test_all_view(self, service: SchedulingService) -> None:
        dot = GraphGenerator(service.calculate_critical_path("P")).generate()

        assert dot.startswith("digraph Schedule {")
        assert dot.endswith("}")
        for task_id in ("A", "B", "C", "D"):
            assert f'"{task_id}" [' in dot
        assert '"A" -> "B" [color="red", penwidth=2];' in dot
        assert '"A" -> "C";' in dot
        assert '"C" -> "D";' in dot

    def test_node_labels(self, service: SchedulingService) -> None:
        dot = GraphGenerator(service.calculate_critical_path("P")).generate()

        assert "Task C\\n2025-01-13 - 2025-01-14\\nslack 1d" in dot
        assert "ends 2025-01-16, 9 working days" in dot

    def test_critical_path_view(self, service: SchedulingService) -> None:
        dot = GraphGenerator(service.calculate_critical_path("P")).generate(
            GraphView.CRITICAL_PATH
        )

        assert dot.startswith("digraph CriticalPath {")
        assert '"C" [' not in dot
        assert '"B" -> "D"' in dot

    def test_completed_tasks_greyed(self, service: SchedulingService) -> None:
        result = service.update_progress("A", 100, date(2025, 1, 10))

        dot = GraphGenerator(result).generate()

        assert 'fillcolor="lightgrey"' in dot

    def test_labels_escaped(self, service: SchedulingService) -> None:
        service.update_task("A", title='Say "hi"')

        dot = GraphGenerator(service.calculate_critical_path("P")).generate()

        assert 'Say \\"hi\\"' in dot

    def test_link_type_labels(self, service: SchedulingService) -> None:
        result = service.add_dependency("C", "A", DependencyType.START_TO_START)

        dot = GraphGenerator(result).generate()

        assert '"A" -> "C" [label="SS"];' in dot
        assert '"A" -> "B" [color="red", penwidth=2];' in dot
