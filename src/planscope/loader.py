"""Workspace file loading and writing.

A workspace YAML file holds projects (with their tasks), users with optional
capacity profiles, weekly allocations and logged time entries. Loading builds
an InMemoryStore; writing dumps a store back in the same layout, including the
schedule fields computed by the engine.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ParseError, ValidationError
from .logger import get_logger
from .models import (
    DependencyType,
    Project,
    ResourceAllocation,
    Task,
    TimeEntry,
    User,
    WeeklyCapacityProfile,
)
from .schemas import ProjectSchema, TaskSchema, UserSchema, WorkspaceSchema
from .store import InMemoryStore

logger = get_logger(__name__)


def load_workspace(path: Path | str) -> InMemoryStore:
    """Load a workspace YAML file into a store.

    Raises:
        ParseError: If the file is missing or is not valid YAML
        ValidationError: If the content does not match the workspace schema
    """
    path = Path(path)
    if not path.exists():
        raise ParseError(f"File not found: {path}")

    try:
        with path.open(encoding="utf-8") as f:
            data: Any = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ParseError(f"Failed to parse YAML: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ParseError("YAML must contain a dictionary at the root level")

    try:
        schema = WorkspaceSchema.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid workspace structure: {e}") from e

    store = build_store(schema)
    logger.debug(
        f"Loaded {path}: {len(store.projects)} projects, {len(store.tasks)} tasks, "
        f"{len(store.users)} users"
    )
    return store


def build_store(schema: WorkspaceSchema) -> InMemoryStore:
    """Convert a validated workspace schema into domain records."""
    store = InMemoryStore()

    for project_id, project_data in schema.projects.items():
        project = Project(
            id=project_id,
            org_id=project_data.org_id,
            start_date=project_data.start_date,
            name=project_data.name,
            planned_end_date=project_data.planned_end_date,
            budget=project_data.budget,
            projected_end_date=project_data.projected_end_date,
            percent_complete=project_data.percent_complete,
            schedule_variance_days=project_data.schedule_variance_days,
        )
        tasks = [
            _task_from_schema(task_id, project_id, task_data)
            for task_id, task_data in project_data.tasks.items()
        ]
        store.add_project(project, tasks)

    for user_id, user_data in schema.users.items():
        user = User(
            id=user_id,
            org_id=user_data.org_id,
            name=user_data.name,
            email=user_data.email,
            is_active=user_data.is_active,
            is_assignable=user_data.is_assignable,
        )
        profile = None
        if user_data.capacity is not None:
            profile = WeeklyCapacityProfile(
                user_id=user_id,
                hours_per_day=user_data.capacity.hours_per_day,
                working_days=user_data.capacity.working_days,
                time_off=user_data.capacity.time_off,
            )
        store.add_user(user, profile)

    for allocation in schema.allocations:
        store.add_allocation(
            ResourceAllocation(
                user_id=allocation.user_id,
                project_id=allocation.project_id,
                week_start=allocation.week_start,
                allocated_hours=allocation.allocated_hours,
                task_id=allocation.task_id,
            )
        )

    for entry in schema.time_entries:
        store.add_time_entry(
            TimeEntry(
                user_id=entry.user_id,
                entry_date=entry.entry_date,
                duration_hours=entry.duration_hours,
                billable=entry.billable,
                project_id=entry.project_id,
            )
        )

    return store


def _task_from_schema(task_id: str, project_id: str, data: TaskSchema) -> Task:
    return Task(
        id=task_id,
        project_id=project_id,
        title=data.title,
        estimated_hours=data.estimated_hours,
        duration_days=data.duration_days,
        dependencies=set(data.dependencies),
        dependency_type=DependencyType(data.dependency_type),
        assigned_to=data.assigned_to,
        start_date=data.start_date,
        due_date=data.due_date,
        percent_complete=data.percent_complete,
        actual_finish_date=data.actual_finish_date,
        earliest_start=data.earliest_start,
        earliest_finish=data.earliest_finish,
        latest_start=data.latest_start,
        latest_finish=data.latest_finish,
        slack=data.slack,
        is_critical=data.is_critical,
    )


def dump_store(store: InMemoryStore) -> dict[str, Any]:
    """Plain-data form of a store, shaped like the workspace file."""
    projects: dict[str, Any] = {}
    for project_id in sorted(store.projects):
        project = store.get_project(project_id)
        tasks = sorted(store.get_project_tasks(project_id), key=lambda t: t.id)
        project_data = ProjectSchema(
            org_id=project.org_id,
            start_date=project.start_date,
            name=project.name,
            planned_end_date=project.planned_end_date,
            budget=project.budget,
            projected_end_date=project.projected_end_date,
            percent_complete=project.percent_complete,
            schedule_variance_days=project.schedule_variance_days,
            tasks={task.id: _task_to_schema(task) for task in tasks},
        )
        projects[project_id] = project_data.model_dump(exclude_none=True)

    users: dict[str, Any] = {}
    for user_id in sorted(store.users):
        user = store.get_user(user_id)
        profile = store.get_capacity_profile(user_id)
        user_data = UserSchema(
            org_id=user.org_id,
            name=user.name,
            email=user.email,
            is_active=user.is_active,
            is_assignable=user.is_assignable,
            capacity=profile.model_dump(exclude={"user_id"}) if profile is not None else None,
        )
        users[user_id] = user_data.model_dump(exclude_none=True)

    output: dict[str, Any] = {"projects": projects, "users": users}
    if store.allocations:
        output["allocations"] = [
            {k: v for k, v in vars(a).items() if v is not None} for a in store.allocations
        ]
    if store.time_entries:
        output["time_entries"] = [
            {k: v for k, v in vars(e).items() if v is not None} for e in store.time_entries
        ]
    return output


def _task_to_schema(task: Task) -> TaskSchema:
    return TaskSchema(
        title=task.title,
        estimated_hours=task.estimated_hours,
        duration_days=task.duration_days,
        dependencies=sorted(task.dependencies),
        dependency_type=task.dependency_type.value,
        assigned_to=task.assigned_to,
        start_date=task.start_date,
        due_date=task.due_date,
        percent_complete=task.percent_complete,
        actual_finish_date=task.actual_finish_date,
        earliest_start=task.earliest_start,
        earliest_finish=task.earliest_finish,
        latest_start=task.latest_start,
        latest_finish=task.latest_finish,
        slack=task.slack,
        is_critical=task.is_critical,
    )


def write_workspace(path: Path | str, store: InMemoryStore) -> None:
    """Write a store back to a workspace YAML file.

    The file is replaced only once the new content has been fully written, so a
    failure leaves the previous workspace intact.
    """
    path = Path(path)
    text = yaml.safe_dump(dump_store(store), default_flow_style=False, sort_keys=False)
    staging = path.with_name(f".{path.name}.tmp")
    try:
        staging.write_text(text, encoding="utf-8")
        os.replace(staging, path)
    finally:
        staging.unlink(missing_ok=True)
    logger.changes(f"Wrote workspace {path}")
