"""Exception taxonomy for the application pipeline."""
from __future__ import annotations


class AutoJobError(Exception):
    """Base class for every error raised by the agent core."""


class ExtractionError(AutoJobError):
    """Job reference could not be turned into a JobRecord."""


class GenerationError(AutoJobError):
    """Materials service failed to produce a cover letter or resume."""


class DispatchError(AutoJobError):
    """Dispatch collaborator did not report a successful submission."""


class RiskDenied(AutoJobError):
    """Risk Shield refused an apply-class action."""

    reason = "Risk threshold exceeded"

    def __init__(self, action: str) -> None:
        super().__init__(f"{self.reason} during {action}")
        self.action = action


class SystemLocked(AutoJobError):
    """Operator lock is engaged; new work may not start."""

    def __init__(self, entry_point: str) -> None:
        super().__init__(f"{entry_point} blocked: system is locked (pause or high risk)")
        self.entry_point = entry_point


class BulkRunActive(AutoJobError):
    """A bulk run is already in flight for this session."""


class InvalidTransition(AutoJobError):
    """Pipeline state machine was asked to move along a forbidden edge."""
