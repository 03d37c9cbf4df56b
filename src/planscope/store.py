"""Persistence boundary for the engine.

The engine talks to its collaborators (task/project CRUD, user roster, time
tracking, capacity-model state) through the protocols below. InMemoryStore is
the reference implementation used by the CLI and the tests.
"""

from __future__ import annotations

import copy
import threading
from collections.abc import Iterable
from datetime import date
from typing import Protocol

from .exceptions import NotFoundError, ValidationError
from .models import (
    Project,
    ResourceAllocation,
    Task,
    TimeEntry,
    User,
    WeeklyCapacityProfile,
)


class ProjectRepository(Protocol):
    """Task and project records."""

    def get_project(self, project_id: str) -> Project:
        """Return a copy of the project or raise NotFoundError."""
        ...

    def get_task(self, task_id: str) -> Task:
        """Return a copy of the task or raise NotFoundError."""
        ...

    def get_project_tasks(self, project_id: str) -> list[Task]:
        """Return copies of every task in the project."""
        ...

    def find_task_project(self, task_id: str) -> str | None:
        """Return the id of the project owning ``task_id``, if any."""
        ...

    def write_schedule(self, project: Project, tasks: list[Task]) -> None:
        """Write the project and all of its tasks as one all-or-nothing batch."""
        ...


class ResourceRepository(Protocol):
    """User roster, capacity profiles, allocations and logged time."""

    def get_user(self, user_id: str) -> User:
        """Return the user or raise NotFoundError."""
        ...

    def list_assignable_users(self, org_id: str) -> list[User]:
        """Return active, assignable users of an organization."""
        ...

    def get_capacity_profile(self, user_id: str) -> WeeklyCapacityProfile | None:
        """Return the user's capacity profile, if one is recorded."""
        ...

    def get_allocations(self, user_id: str, week_start: date) -> list[ResourceAllocation]:
        """Return the user's allocations for one Monday-aligned week."""
        ...

    def get_time_entries(self, user_id: str, start: date, end: date) -> list[TimeEntry]:
        """Return the user's time entries dated in [start, end)."""
        ...


class InMemoryStore:
    """Thread-safe in-memory implementation of both repositories.

    Reads hand out copies so callers can never mutate stored state directly.
    write_schedule stages every record before swapping them in, so a failure
    part way through a batch leaves the stored project untouched.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.projects: dict[str, Project] = {}
        self.tasks: dict[str, Task] = {}
        self.users: dict[str, User] = {}
        self.profiles: dict[str, WeeklyCapacityProfile] = {}
        self.allocations: list[ResourceAllocation] = []
        self.time_entries: list[TimeEntry] = []

    # -- loading -------------------------------------------------------------

    def add_project(self, project: Project, tasks: Iterable[Task] = ()) -> None:
        with self._lock:
            self.projects[project.id] = copy.deepcopy(project)
            for task in tasks:
                if task.project_id != project.id:
                    raise ValidationError(
                        f"Task '{task.id}' belongs to project '{task.project_id}', "
                        f"not '{project.id}'"
                    )
                if task.id in self.tasks:
                    raise ValidationError(f"Duplicate task id '{task.id}'")
                self.tasks[task.id] = copy.deepcopy(task)

    def add_user(self, user: User, profile: WeeklyCapacityProfile | None = None) -> None:
        with self._lock:
            self.users[user.id] = copy.deepcopy(user)
            if profile is not None:
                self.profiles[user.id] = profile.model_copy(deep=True)

    def add_allocation(self, allocation: ResourceAllocation) -> None:
        with self._lock:
            self.allocations.append(copy.deepcopy(allocation))

    def add_time_entry(self, entry: TimeEntry) -> None:
        with self._lock:
            self.time_entries.append(copy.deepcopy(entry))

    # -- ProjectRepository ---------------------------------------------------

    def get_project(self, project_id: str) -> Project:
        with self._lock:
            project = self.projects.get(project_id)
            if project is None:
                raise NotFoundError(f"Project '{project_id}' not found")
            return copy.deepcopy(project)

    def get_task(self, task_id: str) -> Task:
        with self._lock:
            task = self.tasks.get(task_id)
            if task is None:
                raise NotFoundError(f"Task '{task_id}' not found")
            return copy.deepcopy(task)

    def get_project_tasks(self, project_id: str) -> list[Task]:
        with self._lock:
            if project_id not in self.projects:
                raise NotFoundError(f"Project '{project_id}' not found")
            return [
                copy.deepcopy(task)
                for task in self.tasks.values()
                if task.project_id == project_id
            ]

    def find_task_project(self, task_id: str) -> str | None:
        with self._lock:
            task = self.tasks.get(task_id)
            return task.project_id if task is not None else None

    def write_schedule(self, project: Project, tasks: list[Task]) -> None:
        with self._lock:
            if project.id not in self.projects:
                raise NotFoundError(f"Project '{project.id}' not found")
            staged: dict[str, Task] = {}
            for task in tasks:
                staged[task.id] = self._stage_task(project.id, task)
            staged_project = copy.deepcopy(project)

            # Nothing above touched stored state; swap everything in at once.
            self.tasks.update(staged)
            self.projects[project.id] = staged_project

    def _stage_task(self, project_id: str, task: Task) -> Task:
        if task.project_id != project_id:
            raise ValidationError(
                f"Task '{task.id}' belongs to project '{task.project_id}', not '{project_id}'"
            )
        return copy.deepcopy(task)

    # -- ResourceRepository --------------------------------------------------

    def get_user(self, user_id: str) -> User:
        with self._lock:
            user = self.users.get(user_id)
            if user is None:
                raise NotFoundError(f"User '{user_id}' not found")
            return copy.deepcopy(user)

    def list_assignable_users(self, org_id: str) -> list[User]:
        with self._lock:
            return [
                copy.deepcopy(user)
                for user in self.users.values()
                if user.org_id == org_id and user.is_active and user.is_assignable
            ]

    def get_capacity_profile(self, user_id: str) -> WeeklyCapacityProfile | None:
        with self._lock:
            profile = self.profiles.get(user_id)
            return profile.model_copy(deep=True) if profile is not None else None

    def get_allocations(self, user_id: str, week_start: date) -> list[ResourceAllocation]:
        with self._lock:
            return [
                copy.deepcopy(a)
                for a in self.allocations
                if a.user_id == user_id and a.week_start == week_start
            ]

    def get_time_entries(self, user_id: str, start: date, end: date) -> list[TimeEntry]:
        with self._lock:
            return [
                copy.deepcopy(e)
                for e in self.time_entries
                if e.user_id == user_id and start <= e.entry_date < end
            ]
