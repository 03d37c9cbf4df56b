"""Pydantic schemas for workspace YAML data validation."""

from __future__ import annotations

from datetime import date
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from .models import TimeOffPeriod

DependencyTypeName = Literal[
    "finish-to-start", "start-to-start", "finish-to-finish", "start-to-finish"
]


class TaskSchema(BaseModel):
    """Schema for one task under a project's ``tasks`` mapping."""

    title: str = ""
    estimated_hours: float | None = Field(default=None, ge=0)
    duration_days: int | None = Field(default=None, ge=0)
    dependencies: list[str] = Field(default_factory=list)
    dependency_type: DependencyTypeName = "finish-to-start"
    assigned_to: str | None = None
    start_date: date | None = None
    due_date: date | None = None
    percent_complete: float = Field(default=0.0, ge=0, le=100)
    actual_finish_date: date | None = None

    # Written back by `critical-path --write`
    earliest_start: date | None = None
    earliest_finish: date | None = None
    latest_start: date | None = None
    latest_finish: date | None = None
    slack: int | None = None
    is_critical: bool = False

    @field_validator("dependencies", mode="before")
    @classmethod
    def ensure_list(cls, v: Any) -> list[str]:
        """Ensure value is a list."""
        if v is None:
            return []
        if isinstance(v, list):
            return [str(item) for item in v]  # type: ignore[misc]
        return [str(v)]


class ProjectSchema(BaseModel):
    """Schema for one entry of the ``projects`` mapping."""

    org_id: str
    start_date: date
    name: str = ""
    planned_end_date: date | None = None
    budget: float | None = None
    projected_end_date: date | None = None
    percent_complete: float = 0.0
    schedule_variance_days: int | None = None
    tasks: dict[str, TaskSchema] = Field(default_factory=dict)


class CapacityProfileSchema(BaseModel):
    """Schema for a user's ``capacity`` block."""

    hours_per_day: float = Field(default=8.0, ge=0)
    working_days: list[int] = Field(default_factory=lambda: [0, 1, 2, 3, 4])
    time_off: list[TimeOffPeriod] = Field(default_factory=list[TimeOffPeriod])


class UserSchema(BaseModel):
    """Schema for one entry of the ``users`` mapping."""

    org_id: str
    name: str = ""
    email: str = ""
    is_active: bool = True
    is_assignable: bool = True
    capacity: CapacityProfileSchema | None = None


class AllocationSchema(BaseModel):
    user_id: str
    project_id: str
    week_start: date
    allocated_hours: float = Field(ge=0)
    task_id: str | None = None


class TimeEntrySchema(BaseModel):
    user_id: str
    entry_date: date
    duration_hours: float = Field(ge=0)
    billable: bool = False
    project_id: str | None = None


class WorkspaceSchema(BaseModel):
    """Schema for the entire workspace YAML data."""

    projects: dict[str, ProjectSchema] = Field(default_factory=dict)
    users: dict[str, UserSchema] = Field(default_factory=dict)
    allocations: list[AllocationSchema] = Field(default_factory=list)
    time_entries: list[TimeEntrySchema] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_unique_task_ids(self) -> WorkspaceSchema:
        """Task ids are global; the same id may not appear in two projects."""
        owners: dict[str, str] = {}
        for project_id, project in self.projects.items():
            for task_id in project.tasks:
                if task_id in owners:
                    raise ValueError(
                        f"Task id '{task_id}' appears in both '{owners[task_id]}' "
                        f"and '{project_id}'"
                    )
                owners[task_id] = project_id
        return self
