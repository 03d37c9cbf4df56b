"""Pytest configuration and fixtures for planscope tests."""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
from pathlib import Path

import pytest

from planscope.logger import reset_logger
from planscope.models import Project, Task, User, WeeklyCapacityProfile
from planscope.scheduler import SchedulingService
from planscope.store import InMemoryStore

# 2025-01-06 is a Monday
MONDAY = date(2025, 1, 6)
TODAY = date(2025, 2, 3)


@pytest.fixture(autouse=True)
def clean_logger() -> None:
    """Reset logger handlers before each test for isolation."""
    reset_logger()


def make_task(
    task_id: str,
    days: int | None = None,
    *deps: str,
    project_id: str = "P",
    hours: float | None = None,
) -> Task:
    """Create a task with an explicit duration in working days.

    Example:
        make_task("D", 1, "B", "C")  # D takes a day and waits on B and C
    """
    return Task(
        id=task_id,
        project_id=project_id,
        title=f"Task {task_id}",
        duration_days=days,
        estimated_hours=hours,
        dependencies=set(deps),
    )


def diamond_tasks() -> list[Task]:
    """A(5) -> B(3), C(2) -> D(1): critical path A-B-D, 9 working days."""
    return [
        make_task("A", 5),
        make_task("B", 3, "A"),
        make_task("C", 2, "A"),
        make_task("D", 1, "B", "C"),
    ]


@pytest.fixture
def store() -> InMemoryStore:
    """Store holding project P (diamond, starts on a Monday) and project Q (one task)."""
    store = InMemoryStore()
    store.add_project(
        Project(id="P", org_id="acme", start_date=MONDAY, name="Portal"),
        diamond_tasks(),
    )
    store.add_project(
        Project(id="Q", org_id="acme", start_date=MONDAY, name="Quarterly close"),
        [make_task("X", 2, project_id="Q")],
    )
    return store


@pytest.fixture
def service(store: InMemoryStore) -> SchedulingService:
    return SchedulingService(store, today=lambda: TODAY)


@pytest.fixture
def add_user(store: InMemoryStore) -> Callable[..., User]:
    """Factory adding a user (and optional capacity profile) to the store."""

    def _add(
        user_id: str,
        org_id: str = "acme",
        *,
        profile: WeeklyCapacityProfile | None = None,
        is_active: bool = True,
        is_assignable: bool = True,
    ) -> User:
        user = User(
            id=user_id,
            org_id=org_id,
            name=user_id.title(),
            email=f"{user_id}@example.com",
            is_active=is_active,
            is_assignable=is_assignable,
        )
        store.add_user(user, profile)
        return user

    return _add


WORKSPACE_YAML = """
projects:
  P:
    org_id: acme
    name: Portal
    start_date: 2025-01-06
    planned_end_date: 2025-01-14
    tasks:
      A:
        title: Design
        estimated_hours: 40
        assigned_to: ana
      B:
        title: Build
        duration_days: 3
        dependencies: [A]
        assigned_to: ana
      C:
        title: Content
        duration_days: 2
        dependencies: [A]
        assigned_to: ben
      D:
        title: Launch
        duration_days: 1
        dependencies: [B, C]
  Q:
    org_id: acme
    start_date: 2025-01-06
    tasks:
      X:
        duration_days: 2
users:
  ana:
    org_id: acme
    name: Ana
  ben:
    org_id: acme
    name: Ben
    capacity:
      hours_per_day: 8
      working_days: [0, 1, 2, 3, 4]
      time_off:
        - start: 2025-01-09
          end: 2025-01-10
  cy:
    org_id: acme
    name: Cy
    is_active: false
allocations:
  - user_id: ana
    project_id: P
    week_start: 2025-01-06
    allocated_hours: 45
  - user_id: ben
    project_id: P
    week_start: 2025-01-06
    allocated_hours: 12
time_entries:
  - user_id: ana
    entry_date: 2025-01-06
    duration_hours: 8
    billable: true
  - user_id: ana
    entry_date: 2025-01-07
    duration_hours: 4
"""


@pytest.fixture
def workspace_file(tmp_path: Path) -> Path:
    """Workspace YAML mirroring the `store` fixture, plus users and logged time."""
    path = tmp_path / "workspace.yaml"
    path.write_text(WORKSPACE_YAML, encoding="utf-8")
    return path
