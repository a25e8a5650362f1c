"""
Reconciliation Errors

Every error here is per-operation and recoverable: the operation is
rejected before anything is written, and the caller can retry with
corrected input.

Unresolved author/editor references are NOT errors. They are tolerated
at display and fee time (name "unknown", fee 0).

ConcurrentUpdateError is raised by the stores, so it lives with the
storage errors and is re-exported here.
"""

from typing import Optional

from manuscript_fees.models.manuscript import CheckStatus, ValidationIssue
from manuscript_fees.services.storage.interface import ConcurrentUpdateError


class ReconciliationError(Exception):
    """Base exception for the double-entry check."""
    pass


class ValidationError(ReconciliationError):
    """
    Required input is missing (e.g. capturer name or author reference).

    Carries the individual issues so collaborators can show them per field.
    """

    def __init__(self, message: str, issues: Optional[list[ValidationIssue]] = None):
        super().__init__(message)
        self.issues = issues or []


class InvalidStateError(ReconciliationError):
    """The operation is not allowed in the work's current status."""

    def __init__(self, operation: str, status: Optional[CheckStatus], reason: Optional[str] = None):
        self.operation = operation
        self.status = status
        state = status.value if status is not None else "(new)"
        message = f"Cannot {operation} a work in status {state}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)

