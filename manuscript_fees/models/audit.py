"""
Audit Models for Manuscript Fees

Every state change of a work, and every change to the catalog, becomes
an AuditEvent. Editors read them to answer two questions before fees
are paid: who typed the figures, and who decided between conflicting
entries.

DESIGN DECISION: Events are only ever appended. Correcting a mistake
produces a new event; the old one stays.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from manuscript_fees.models.manuscript import utc_now


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every transition of the double-entry check has its own event type.
    """
    # Double-entry check
    FIRST_ENTRY_CAPTURED = "first_entry_captured"
    SECOND_ENTRY_CAPTURED = "second_entry_captured"
    DISCREPANCY_DETECTED = "discrepancy_detected"
    WORK_CONFIRMED = "work_confirmed"
    DISCREPANCY_RESOLVED = "discrepancy_resolved"
    WORK_DIRECT_CREATED = "work_direct_created"

    # Rejected operations
    ENTRY_REJECTED = "entry_rejected"
    INVALID_TRANSITION = "invalid_transition"
    CONCURRENT_UPDATE = "concurrent_update"

    # Administrative work changes
    WORK_EDITED = "work_edited"
    WORK_DELETED = "work_deleted"

    # Catalog
    AUTHOR_SAVED = "author_saved"
    AUTHOR_DELETED = "author_deleted"
    EDITOR_SAVED = "editor_saved"
    EDITOR_DELETED = "editor_deleted"
    MAGAZINE_SAVED = "magazine_saved"
    MAGAZINE_DELETED = "magazine_deleted"
    ISSUE_SAVED = "issue_saved"
    ISSUE_DELETED = "issue_deleted"

    # Exchange
    DATA_EXPORTED = "data_exported"
    DATA_IMPORTED = "data_imported"
    IMPORT_FAILED = "import_failed"

    # System events
    SYSTEM_ERROR = "system_error"
    STORAGE_ERROR = "storage_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    One row of the audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Event id"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="UTC time of the event"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="What happened"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="INFO for normal flow, WARNING for rejections"
    )

    # Subject of the event
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'work', 'author', 'issue')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Id of that entity"
    )

    # Shared by the events of one user action
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one resolve request)"
    )

    # Who did it (entry capturer, resolver)
    actor: Optional[str] = Field(
        default=None,
        max_length=200,
        description="Name of the person who triggered the event"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="One-line summary for the audit sheet"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Event-specific payload, e.g. the differences found"
    )

    # Rejections and failures
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="False for events raised by the system itself"
    )

    def to_log_dict(self) -> dict:
        """
        Flat dict for the structlog JSON renderer.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "actor": self.actor,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Row for the audit worksheet.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, actor, description, details_json, error_message,
         is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.actor or "",
            self.description,
            json.dumps(self.details, ensure_ascii=False, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Factory methods for every event the system records.

    Usage:
        event = AuditEventBuilder.first_entry_captured(work_id, "Alice", correlation_id)
        event = AuditEventBuilder.discrepancy_resolved(work_id, "first", "Carol", correlation_id)
    """

    @staticmethod
    def first_entry_captured(
        work_id: str,
        issue_id: str,
        captured_by: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FIRST_ENTRY_CAPTURED,
            entity_type="work",
            entity_id=work_id,
            correlation_id=correlation_id,
            actor=captured_by,
            description=f"First entry captured by {captured_by}",
            details={"issue_id": issue_id},
            is_user_action=True,
        )

    @staticmethod
    def second_entry_captured(
        work_id: str,
        captured_by: str,
        matched: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SECOND_ENTRY_CAPTURED,
            entity_type="work",
            entity_id=work_id,
            correlation_id=correlation_id,
            actor=captured_by,
            description=(
                f"Second entry captured by {captured_by}: "
                f"{'matches' if matched else 'differs from'} first entry"
            ),
            details={"matched": matched},
            is_user_action=True,
        )

    @staticmethod
    def discrepancy_detected(
        work_id: str,
        differences: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DISCREPANCY_DETECTED,
            severity=AuditSeverity.WARNING,
            entity_type="work",
            entity_id=work_id,
            correlation_id=correlation_id,
            description=f"Entries differ in {len(differences)} field(s)",
            details={
                "fields": [d["field"] for d in differences],
                "differences": differences,
            },
        )

    @staticmethod
    def work_confirmed(
        work_id: str,
        confirmed_by: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WORK_CONFIRMED,
            entity_type="work",
            entity_id=work_id,
            correlation_id=correlation_id,
            actor=confirmed_by,
            description="Matching entries confirmed",
            is_user_action=True,
        )

    @staticmethod
    def discrepancy_resolved(
        work_id: str,
        resolution: str,
        resolved_by: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DISCREPANCY_RESOLVED,
            entity_type="work",
            entity_id=work_id,
            correlation_id=correlation_id,
            actor=resolved_by,
            description=f"Discrepancy resolved using {resolution} entry",
            details={"resolution": resolution},
            is_user_action=True,
        )

    @staticmethod
    def work_direct_created(
        work_id: str,
        issue_id: str,
        title: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WORK_DIRECT_CREATED,
            entity_type="work",
            entity_id=work_id,
            correlation_id=correlation_id,
            description=f"Work entered directly without double check: {title}",
            details={"issue_id": issue_id},
            is_user_action=True,
        )

    @staticmethod
    def entry_rejected(
        operation: str,
        issues: list[dict],
        work_id: Optional[str] = None,
        captured_by: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="work",
            entity_id=work_id,
            correlation_id=correlation_id,
            actor=captured_by,
            description=f"{operation} rejected with {len(issues)} issue(s)",
            details={
                "operation": operation,
                "issues": issues,
            },
        )

    @staticmethod
    def invalid_transition(
        work_id: str,
        operation: str,
        status: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INVALID_TRANSITION,
            severity=AuditSeverity.WARNING,
            entity_type="work",
            entity_id=work_id,
            correlation_id=correlation_id,
            description=f"{operation} not allowed while work is {status}",
            details={
                "operation": operation,
                "status": status,
            },
        )

    @staticmethod
    def concurrent_update(
        work_id: str,
        expected_version: int,
        actual_version: Optional[int],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONCURRENT_UPDATE,
            severity=AuditSeverity.WARNING,
            entity_type="work",
            entity_id=work_id,
            correlation_id=correlation_id,
            description="Work was modified by someone else; write rejected",
            details={
                "expected_version": expected_version,
                "actual_version": actual_version,
            },
        )

    @staticmethod
    def work_changed(
        work_id: str,
        deleted: bool = False,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WORK_DELETED if deleted else AuditEventType.WORK_EDITED,
            entity_type="work",
            entity_id=work_id,
            correlation_id=correlation_id,
            description="Work deleted" if deleted else "Work edited outside the double check",
            details=details or {},
            is_user_action=True,
        )

    @staticmethod
    def catalog_changed(
        entity_type: str,
        entity_id: str,
        name: str,
        deleted: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        event_type = AuditEventType(
            f"{entity_type}_{'deleted' if deleted else 'saved'}"
        )
        return AuditEvent(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"{entity_type.capitalize()} {'deleted' if deleted else 'saved'}: {name}",
            is_user_action=True,
        )

    @staticmethod
    def data_exported(
        export_format: str,
        work_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_EXPORTED,
            correlation_id=correlation_id,
            description=f"Data exported as {export_format} ({work_count} works)",
            details={
                "format": export_format,
                "work_count": work_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def data_imported(
        magazine_count: int,
        work_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_IMPORTED,
            correlation_id=correlation_id,
            description=f"Data imported: {magazine_count} magazines, {work_count} works",
            details={
                "magazine_count": magazine_count,
                "work_count": work_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def import_failed(
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_FAILED,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description="Data import rejected",
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={"operation": operation},
            correlation_id=correlation_id,
        )
