"""
Double-entry reconciliation package.

Pure core (capture, detector, state machine, resolution) plus the async
ReconciliationService that runs it against a store.
"""

from manuscript_fees.reconciliation.errors import (
    ConcurrentUpdateError,
    InvalidStateError,
    ReconciliationError,
    ValidationError,
)
from manuscript_fees.reconciliation.state_machine import (
    CheckEvent,
    TRANSITIONS,
    can_apply,
    is_terminal,
    next_status,
)
from manuscript_fees.reconciliation.detector import (
    COMPARED_FIELDS,
    UNKNOWN_NAME,
    compare,
    describe_differences,
    has_discrepancy,
)
from manuscript_fees.reconciliation.capture import capture_first, capture_second
from manuscript_fees.reconciliation.resolution import (
    Resolution,
    ResolutionChoice,
    confirm,
    describe_resolution,
    direct_create,
    resolve,
)
from manuscript_fees.reconciliation.service import ReconciliationService

__all__ = [
    # Errors
    "ConcurrentUpdateError",
    "InvalidStateError",
    "ReconciliationError",
    "ValidationError",
    # State machine
    "CheckEvent",
    "TRANSITIONS",
    "can_apply",
    "is_terminal",
    "next_status",
    # Detector
    "COMPARED_FIELDS",
    "UNKNOWN_NAME",
    "compare",
    "describe_differences",
    "has_discrepancy",
    # Capture and resolution
    "capture_first",
    "capture_second",
    "Resolution",
    "ResolutionChoice",
    "confirm",
    "describe_resolution",
    "direct_create",
    "resolve",
    # Service
    "ReconciliationService",
]
