"""Tests for SchedulingService operations and their persistence guarantees."""

from __future__ import annotations

import threading
from datetime import date

import pytest

from planscope.config import PlanscopeConfig, SchedulingSettings
from planscope.exceptions import (
    ComputationError,
    CyclicDependencyError,
    InvalidDependencyError,
    NotFoundError,
    ValidationError,
)
from planscope.models import DependencyType, Project, Task, TaskState
from planscope.rollup import ProjectProgress
from planscope.scheduler import SchedulingService
from planscope.store import InMemoryStore
from tests.conftest import MONDAY, TODAY, diamond_tasks


class RecordingSink:
    def __init__(self) -> None:
        self.received: list[ProjectProgress] = []

    def record_progress(self, progress: ProjectProgress) -> None:
        self.received.append(progress)


class FailingStore(InMemoryStore):
    """Store whose batch write fails while staging one chosen task."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_on: str | None = None

    def _stage_task(self, project_id: str, task: Task) -> Task:
        if task.id == self.fail_on:
            raise RuntimeError("connection reset")
        return super()._stage_task(project_id, task)


class TestCalculateCriticalPath:
    def test_persists_schedule_fields(self, service: SchedulingService, store: InMemoryStore) -> None:
        result = service.calculate_critical_path("P")

        assert [t.id for t in result.tasks] == ["A", "B", "C", "D"]
        c = store.get_task("C")
        assert c.slack == 1
        assert not c.is_critical
        assert c.earliest_start == date(2025, 1, 13)
        assert c.latest_finish == date(2025, 1, 15)
        d = store.get_task("D")
        assert d.is_critical
        assert store.get_project("P").projected_end_date == date(2025, 1, 16)

    def test_result_to_dict(self, service: SchedulingService) -> None:
        data = service.calculate_critical_path("P").to_dict()

        assert data["projectDuration"] == 9
        assert data["criticalPath"] == ["A", "B", "D"]
        assert data["criticalTasks"] == ["A", "B", "D"]
        assert data["projectedEndDate"] == "2025-01-16"
        task_c = next(t for t in data["tasks"] if t["id"] == "C")
        assert task_c["slack"] == 1
        assert task_c["isCritical"] is False
        assert task_c["earliestStart"] == "2025-01-13"

    def test_repeated_recompute_is_identical(
        self, service: SchedulingService, store: InMemoryStore
    ) -> None:
        service.calculate_critical_path("P")
        first = store.get_project_tasks("P")
        service.calculate_critical_path("P")
        second = store.get_project_tasks("P")

        assert first == second

    def test_unknown_project(self, service: SchedulingService) -> None:
        with pytest.raises(NotFoundError):
            service.calculate_critical_path("nope")

    def test_progress_sent_to_health_sink(self, store: InMemoryStore) -> None:
        sink = RecordingSink()
        service = SchedulingService(store, health_sink=sink)

        service.calculate_critical_path("P")

        assert len(sink.received) == 1
        progress = sink.received[0]
        assert progress.project_id == "P"
        assert progress.total_tasks == 4
        assert progress.critical_task_count == 3
        assert progress.projected_end_date == date(2025, 1, 16)

    def test_configured_holiday_applies(self, store: InMemoryStore) -> None:
        config = PlanscopeConfig(scheduling=SchedulingSettings(holidays=[date(2025, 1, 8)]))
        service = SchedulingService(store, config)

        result = service.calculate_critical_path("P")

        assert result.schedule.projected_end_date == date(2025, 1, 17)


class TestDependencyMutations:
    def test_cycle_rejected_and_store_unchanged(
        self, service: SchedulingService, store: InMemoryStore
    ) -> None:
        service.calculate_critical_path("P")
        before = store.get_project_tasks("P")

        with pytest.raises(CyclicDependencyError) as exc_info:
            service.add_dependency("A", "D")

        assert exc_info.value.cycle[0] == exc_info.value.cycle[-1]
        assert store.get_project_tasks("P") == before
        assert store.get_task("A").dependencies == set()

    def test_self_dependency_rejected(self, service: SchedulingService) -> None:
        with pytest.raises(CyclicDependencyError):
            service.add_dependency("B", "B")

    def test_missing_predecessor(self, service: SchedulingService, store: InMemoryStore) -> None:
        with pytest.raises(InvalidDependencyError, match="does not exist"):
            service.add_dependency("D", "ghost")

        assert store.get_task("D").dependencies == {"B", "C"}

    def test_cross_project_predecessor(
        self, service: SchedulingService, store: InMemoryStore
    ) -> None:
        with pytest.raises(InvalidDependencyError, match="belongs to project 'Q'"):
            service.add_dependency("D", "X")

        assert store.get_task("D").dependencies == {"B", "C"}

    def test_add_dependency_recomputes(self, service: SchedulingService) -> None:
        result = service.add_dependency("C", "B")

        assert result.schedule.project_duration == 11
        assert result.schedule.critical_chain == ["A", "B", "C", "D"]

    def test_add_dependency_sets_link_type(
        self, service: SchedulingService, store: InMemoryStore
    ) -> None:
        result = service.add_dependency("C", "B", DependencyType.FINISH_TO_FINISH)

        c = store.get_task("C")
        assert c.dependency_type == DependencyType.FINISH_TO_FINISH
        assert c.dependencies == {"A", "B"}
        # C may overlap B but finishes no earlier than B
        assert c.earliest_start == date(2025, 1, 14)
        assert c.earliest_finish == date(2025, 1, 15)
        assert c.is_critical
        assert result.schedule.project_duration == 9

    def test_add_dependency_keeps_link_type_by_default(
        self, service: SchedulingService, store: InMemoryStore
    ) -> None:
        service.add_dependency("C", "A", DependencyType.START_TO_START)
        service.add_dependency("C", "B")

        assert store.get_task("C").dependency_type == DependencyType.START_TO_START

    def test_remove_dependency_recomputes(
        self, service: SchedulingService, store: InMemoryStore
    ) -> None:
        result = service.remove_dependency("D", "C")

        assert store.get_task("D").dependencies == {"B"}
        assert result.schedule.tasks["C"].slack == 2

    def test_remove_missing_dependency(self, service: SchedulingService) -> None:
        with pytest.raises(ValidationError, match="does not depend on"):
            service.remove_dependency("B", "C")

    def test_unknown_task(self, service: SchedulingService) -> None:
        with pytest.raises(NotFoundError):
            service.add_dependency("ghost", "A")


class TestUpdateTask:
    def test_duration_change_moves_critical_path(self, service: SchedulingService) -> None:
        result = service.update_task("C", duration_days=6)

        assert result.schedule.critical_chain == ["A", "C", "D"]
        assert result.schedule.tasks["B"].slack == 3

    def test_unknown_field_rejected(self, service: SchedulingService) -> None:
        with pytest.raises(ValidationError, match="slack"):
            service.update_task("C", slack=0)

    def test_negative_duration_rejected(self, service: SchedulingService) -> None:
        with pytest.raises(ValidationError):
            service.update_task("C", duration_days=-1)


class TestUpdateProgress:
    def test_state_transitions(self, service: SchedulingService, store: InMemoryStore) -> None:
        assert store.get_task("A").state == TaskState.NOT_STARTED

        service.update_progress("A", 40)
        assert store.get_task("A").state == TaskState.IN_PROGRESS
        assert store.get_task("A").actual_finish_date is None

        service.update_progress("A", 100)
        task = store.get_task("A")
        assert task.state == TaskState.COMPLETED
        assert task.actual_finish_date == TODAY

    def test_completed_progress_cannot_decrease(
        self, service: SchedulingService, store: InMemoryStore
    ) -> None:
        service.update_progress("A", 100, date(2025, 1, 10))

        with pytest.raises(ValidationError, match="cannot decrease"):
            service.update_progress("A", 90)

        assert store.get_task("A").percent_complete == 100

    def test_in_progress_cannot_decrease(
        self, service: SchedulingService, store: InMemoryStore
    ) -> None:
        service.update_progress("A", 50)

        with pytest.raises(ValidationError, match="cannot decrease"):
            service.update_progress("A", 0)

        task = store.get_task("A")
        assert task.percent_complete == 50
        assert task.state == TaskState.IN_PROGRESS
        service.update_progress("A", 50)

    def test_actual_finish_date_is_immutable(
        self, service: SchedulingService, store: InMemoryStore
    ) -> None:
        service.update_progress("A", 100, date(2025, 1, 10))

        with pytest.raises(ValidationError, match="already finished"):
            service.update_progress("A", 100, date(2025, 1, 14))

        # Repeating the same completion is harmless
        service.update_progress("A", 100, date(2025, 1, 10))
        service.update_progress("A", 100)
        assert store.get_task("A").actual_finish_date == date(2025, 1, 10)

    @pytest.mark.parametrize("percent", [-1, 100.5, 250])
    def test_percent_out_of_range(self, service: SchedulingService, percent: float) -> None:
        with pytest.raises(ValidationError, match="between 0 and 100"):
            service.update_progress("A", percent)

    def test_finish_date_requires_completion(self, service: SchedulingService) -> None:
        with pytest.raises(ValidationError):
            service.update_progress("A", 50, date(2025, 1, 10))

    def test_late_finish_shifts_dependents(self, store: InMemoryStore) -> None:
        store.add_project(
            Project(id="W", org_id="acme", start_date=date(2025, 1, 8)),
            [
                Task(
                    id=f"w{t.id}",
                    project_id="W",
                    duration_days=t.duration_days,
                    dependencies={f"w{d}" for d in t.dependencies},
                )
                for t in diamond_tasks()
            ],
        )
        service = SchedulingService(store)
        before = service.calculate_critical_path("W").schedule

        after = service.update_progress("wA", 100, date(2025, 1, 16)).schedule

        for task_id in ("wB", "wC", "wD"):
            assert after.tasks[task_id].es == before.tasks[task_id].es + 2
        assert store.get_task("wB").earliest_start == date(2025, 1, 17)

    def test_rollup_percent_complete(
        self, service: SchedulingService, store: InMemoryStore
    ) -> None:
        result = service.update_progress("A", 100, date(2025, 1, 10))

        # Weights are days x 8h: A=40, B=24, C=16, D=8
        assert result.progress.percent_complete == pytest.approx(100 * 40 / 88)
        assert result.progress.completed_tasks == 1
        assert store.get_project("P").percent_complete == pytest.approx(100 * 40 / 88)


class TestBlockedTasks:
    def test_blocked_until_predecessors_complete(self, service: SchedulingService) -> None:
        assert [t.id for t in service.blocked_tasks("P")] == ["B", "C", "D"]

        service.update_progress("A", 100, date(2025, 1, 10))
        assert [t.id for t in service.blocked_tasks("P")] == ["D"]

        service.update_progress("B", 100, date(2025, 1, 15))
        service.update_progress("C", 100, date(2025, 1, 14))
        assert service.blocked_tasks("P") == []

    def test_start_to_start_waits_for_start(self, service: SchedulingService) -> None:
        service.add_dependency("C", "A", DependencyType.START_TO_START)
        assert [t.id for t in service.blocked_tasks("P")] == ["B", "C", "D"]

        service.update_progress("A", 50)
        assert [t.id for t in service.blocked_tasks("P")] == ["B", "D"]

    def test_finish_links_never_block(self, service: SchedulingService) -> None:
        service.add_dependency("D", "B", DependencyType.FINISH_TO_FINISH)

        assert [t.id for t in service.blocked_tasks("P")] == ["B", "C"]


class TestAtomicWrites:
    def test_failed_write_leaves_no_partial_schedule(self) -> None:
        store = FailingStore()
        store.add_project(Project(id="P", org_id="acme", start_date=MONDAY), diamond_tasks())
        service = SchedulingService(store)
        service.calculate_critical_path("P")
        before_tasks = store.get_project_tasks("P")
        before_project = store.get_project("P")

        store.fail_on = "C"
        with pytest.raises(ComputationError, match="Failed to persist") as exc_info:
            service.update_task("A", duration_days=10)

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert store.get_project_tasks("P") == before_tasks
        assert store.get_project("P") == before_project
        assert store.get_task("A").duration_days == 5

    def test_failed_validation_writes_nothing(self) -> None:
        store = FailingStore()
        store.add_project(Project(id="P", org_id="acme", start_date=MONDAY), diamond_tasks())
        service = SchedulingService(store)
        before = store.get_project_tasks("P")

        with pytest.raises(CyclicDependencyError):
            service.add_dependency("A", "C")

        assert store.get_project_tasks("P") == before


class TestConcurrentMutations:
    def test_parallel_progress_updates_all_land(self, store: InMemoryStore) -> None:
        service = SchedulingService(store, today=lambda: TODAY)
        errors: list[Exception] = []

        def update(task_id: str) -> None:
            try:
                service.update_progress(task_id, 50)
            except Exception as e:  # noqa: BLE001 - collected for the assertion below
                errors.append(e)

        threads = [threading.Thread(target=update, args=(t,)) for t in ("A", "B", "C", "D")]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert all(t.percent_complete == 50 for t in store.get_project_tasks("P"))
        assert service.locks.active_keys() == set()

    def test_services_share_project_locks(self, store: InMemoryStore) -> None:
        first = SchedulingService(store)
        second = SchedulingService(store)
        assert first.locks is second.locks

        done = threading.Event()

        def recompute() -> None:
            second.calculate_critical_path("P")
            done.set()

        with first.locks.hold("P"):
            worker = threading.Thread(target=recompute)
            worker.start()
            assert not done.wait(0.2)
        worker.join(timeout=5)

        assert done.is_set()
