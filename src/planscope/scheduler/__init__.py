"""Scheduler package - dependency graphs and the critical path method.

Main entry points:
- SchedulingService: recompute a project's schedule and apply graph mutations
- TaskGraph: build and validate a project's dependency graph
- CriticalPathCalculator: pure forward/backward CPM passes
"""

from .core import CriticalPathResult, ProjectSchedule, TaskSchedule
from .critical_path import CriticalPathCalculator
from .graph import TaskGraph
from .locks import KeyedLock
from .service import SchedulingService, build_calendar

__all__ = [
    # Core dataclasses
    "TaskSchedule",
    "ProjectSchedule",
    "CriticalPathResult",
    # Graph and passes
    "TaskGraph",
    "CriticalPathCalculator",
    # Concurrency
    "KeyedLock",
    # High-level service
    "SchedulingService",
    "build_calendar",
]
