"""Configuration models and YAML loading for planscope.

A single configuration file (planscope_config.yaml) holds the scheduling
calendar, capacity defaults, workload thresholds and the size of the worker
pool used by the aggregators. Every section is optional.
"""

from __future__ import annotations

from datetime import date
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ValidationError

DEFAULT_CONFIG_FILENAME = "planscope_config.yaml"

# Monday=0 ... Sunday=6, matching date.weekday()
DEFAULT_WORKING_WEEKDAYS = [0, 1, 2, 3, 4]


def _check_weekdays(value: list[int]) -> list[int]:
    for day in value:
        if day < 0 or day > 6:  # noqa: PLR2004 - weekday range
            raise ValueError(f"weekday must be between 0 (Monday) and 6 (Sunday), got {day}")
    return sorted(set(value))


class SchedulingSettings(BaseModel):
    """Calendar and duration conversion used by the critical path calculator."""

    hours_per_day: float = Field(default=8.0, gt=0)
    default_duration_days: int = Field(default=1, ge=0)  # Tasks with no estimate at all
    working_weekdays: list[int] = Field(default_factory=lambda: list(DEFAULT_WORKING_WEEKDAYS))
    holidays: list[date] = Field(default_factory=list)  # Empty = weekends only

    @field_validator("working_weekdays")
    @classmethod
    def validate_weekdays(cls, v: list[int]) -> list[int]:
        """Ensure weekdays are valid and non-empty."""
        if not v:
            raise ValueError("working_weekdays must not be empty")
        return _check_weekdays(v)


class CapacitySettings(BaseModel):
    """Fallback calendar for users without a weekly capacity profile."""

    default_hours_per_day: float = Field(default=8.0, ge=0)
    default_working_days: list[int] = Field(
        default_factory=lambda: list(DEFAULT_WORKING_WEEKDAYS)
    )

    @field_validator("default_working_days")
    @classmethod
    def validate_weekdays(cls, v: list[int]) -> list[int]:
        """Ensure weekdays are valid."""
        return _check_weekdays(v)


class WorkloadBasis(str, Enum):
    """Which hours are compared against capacity when classifying workload."""

    ALLOCATION = "allocation"  # Planned commitment (ResourceAllocation)
    ACTUAL = "actual"  # Logged time (TimeEntry)


class WorkloadSettings(BaseModel):
    """Thresholds for team workload classification (fractions of capacity)."""

    under_threshold: float = Field(default=0.70, ge=0)
    over_threshold: float = Field(default=1.00, ge=0)
    basis: WorkloadBasis = WorkloadBasis.ALLOCATION

    @model_validator(mode="after")
    def validate_threshold_order(self) -> WorkloadSettings:
        """Ensure the under threshold does not exceed the over threshold."""
        if self.under_threshold > self.over_threshold:
            raise ValueError("under_threshold must not exceed over_threshold")
        return self


class AvailabilitySettings(BaseModel):
    """Defaults for availability search."""

    default_min_hours: float = Field(default=10.0, ge=0)


class ConcurrencySettings(BaseModel):
    """Bound on per-user fan-out (keep below the datastore's pool size)."""

    max_workers: int = Field(default=8, ge=1)


class PlanscopeConfig(BaseModel):
    """Complete planscope configuration."""

    scheduling: SchedulingSettings = SchedulingSettings()
    capacity: CapacitySettings = CapacitySettings()
    workload: WorkloadSettings = WorkloadSettings()
    availability: AvailabilitySettings = AvailabilitySettings()
    concurrency: ConcurrencySettings = ConcurrencySettings()


def load_config(config_path: Path | str) -> PlanscopeConfig:
    """Load configuration from a YAML file.

    Args:
        config_path: Path to planscope_config.yaml

    Returns:
        Parsed configuration (missing sections take their defaults)

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValidationError: If the config is malformed
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with config_path.open() as f:
        data: Any = yaml.safe_load(f)

    if data is None:
        return PlanscopeConfig()
    if not isinstance(data, dict):
        raise ValidationError(f"Invalid config file {config_path}: expected a mapping")

    try:
        return PlanscopeConfig.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid config file {config_path}: {e}") from e


def discover_config(workspace_path: Path | None, config_path: Path | None = None) -> PlanscopeConfig:
    """Find and load configuration.

    Search order:
    1. Explicit config_path argument
    2. Workspace file directory / planscope_config.yaml
    3. Current directory / planscope_config.yaml

    Falls back to defaults when nothing is found.
    """
    if config_path is not None:
        return load_config(config_path)

    candidates: list[Path] = []
    if workspace_path is not None:
        candidates.append(Path(workspace_path).parent / DEFAULT_CONFIG_FILENAME)
    candidates.append(Path(DEFAULT_CONFIG_FILENAME))

    for candidate in candidates:
        if candidate.exists():
            return load_config(candidate)
    return PlanscopeConfig()
