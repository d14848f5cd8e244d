"""
Vehicle as Code - Engine Errors

All engine errors carry a short message plus the full list of details,
so callers can fix every problem in a single round.
"""

from __future__ import annotations
from typing import Any, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from vac.engine.validator import ValidationIssue


class VacError(Exception):
    """Base exception for all Vehicle as Code errors."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.message = message
        self.errors = errors or []
        super().__init__(self.message)

    def __str__(self) -> str:
        if not self.errors:
            return self.message
        return f"{self.message}: " + "; ".join(self.errors)


class ValidationError(VacError):
    """Raised when a document does not match the resource schema."""

    def __init__(self, message: str, issues: Optional[List["ValidationIssue"]] = None):
        self.issues = issues or []
        super().__init__(message, errors=[str(issue) for issue in self.issues])


class DependencyError(VacError):
    """Raised when dependency references cannot be resolved."""


class CycleError(VacError):
    """Raised when dependency edges form a cycle."""

    def __init__(self, message: str, cycles: Optional[List[List[str]]] = None):
        self.cycles = cycles or []
        super().__init__(
            message,
            errors=[" -> ".join(cycle) for cycle in self.cycles],
        )


class PlanError(VacError):
    """Raised when change operations cannot be ordered (internal invariant violation)."""


class StalePlanError(VacError):
    """Raised when a plan no longer matches the latest recorded state."""


class StateNotFoundError(VacError):
    """Raised by state stores before the first snapshot has been saved."""


class OperationFailure(VacError):
    """Raised when an operation failed during plan execution."""

    def __init__(self, message: str, address: str, result: Any = None):
        self.address = address
        self.result = result
        super().__init__(message, errors=[address])
