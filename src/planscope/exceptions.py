"""Custom exceptions for planscope."""

from __future__ import annotations


class PlanscopeError(Exception):
    """Base exception for all planscope errors."""

    pass


class ValidationError(PlanscopeError):
    """Raised when input validation fails (bad ranges, missing fields)."""

    pass


class CyclicDependencyError(ValidationError):
    """Raised when a dependency cycle is detected in a task graph."""

    def __init__(self, cycle: list[str]):
        self.cycle = cycle
        super().__init__(f"Cyclic dependency detected: {' -> '.join(cycle)}")


class InvalidDependencyError(ValidationError):
    """Raised when a dependency does not resolve to a task in the same project."""

    def __init__(self, task_id: str, dependency_id: str, reason: str = "does not exist"):
        self.task_id = task_id
        self.dependency_id = dependency_id
        super().__init__(f"Task '{task_id}' depends on '{dependency_id}', which {reason}")


class ParseError(PlanscopeError):
    """Raised when a workspace file cannot be read or parsed."""

    pass


class NotFoundError(PlanscopeError):
    """Raised when a project, task or user cannot be found."""

    pass


class ComputationError(PlanscopeError):
    """Raised when a recompute fails mid-traversal or mid-persistence."""

    pass
