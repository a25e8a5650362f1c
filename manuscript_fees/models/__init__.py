"""
Data Models Package

This package contains all Pydantic models used in the Manuscript Fees system.
All data flowing through the system must conform to these schemas.
"""

from manuscript_fees.models.manuscript import (
    Author,
    CheckStatus,
    Editor,
    EntrySnapshot,
    FeeDocument,
    FieldDifference,
    Issue,
    Magazine,
    PendingWork,
    ValidationIssue,
    ValidationResult,
    Work,
    WorkFields,
    new_id,
    utc_now,
)
from manuscript_fees.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Manuscript models
    "Author",
    "CheckStatus",
    "Editor",
    "EntrySnapshot",
    "FeeDocument",
    "FieldDifference",
    "Issue",
    "Magazine",
    "PendingWork",
    "ValidationIssue",
    "ValidationResult",
    "Work",
    "WorkFields",
    "new_id",
    "utc_now",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
