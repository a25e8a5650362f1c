"""
Audit Logger

DESIGN DECISION: Every state change of a work is logged.
The double-entry check is only worth something if, before fees are
paid, an editor can see who entered each value, which entries
disagreed and how the disagreement was settled.

The audit logger:
- Is async, like the stores it writes to
- Never fails the operation being audited when the audit store is down
- Groups the events of one user action under a correlation ID
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from manuscript_fees.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from manuscript_fees.services.storage.interface import AuditStorageInterface


def configure_logging(level: str = "INFO") -> None:
    """Configure structlog for local JSON logging."""
    logging.basicConfig(format="%(message)s")
    logging.getLogger().setLevel(getattr(logging, level))
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(ensure_ascii=False)
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class AuditLogger:
    """
    Records what happened to works and the catalog.

    Each event is written to:
    1. The structured local log
    2. The audit store, where editors can review it
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Audit store for persisted events.
                    When None, events only reach the local log.
        """
        self._storage = storage
        self._logger = structlog.get_logger("manuscript_fees.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        The event always goes to the local log, and to the audit store when one is configured.

        Returns False only when the audit store rejected or failed the write.
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # The audited operation already succeeded
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_first_entry(
        self,
        work_id: str,
        issue_id: str,
        captured_by: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a first entry."""
        await self.log(AuditEventBuilder.first_entry_captured(
            work_id=work_id,
            issue_id=issue_id,
            captured_by=captured_by,
            correlation_id=correlation_id,
        ))

    async def log_second_entry(
        self,
        work_id: str,
        captured_by: str,
        differences: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a second entry, and the discrepancy if there is one."""
        await self.log(AuditEventBuilder.second_entry_captured(
            work_id=work_id,
            captured_by=captured_by,
            matched=not differences,
            correlation_id=correlation_id,
        ))
        if differences:
            await self.log(AuditEventBuilder.discrepancy_detected(
                work_id=work_id,
                differences=differences,
                correlation_id=correlation_id,
            ))

    async def log_confirmed(
        self,
        work_id: str,
        confirmed_by: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.work_confirmed(
            work_id=work_id,
            confirmed_by=confirmed_by,
            correlation_id=correlation_id,
        ))

    async def log_resolved(
        self,
        work_id: str,
        resolution: str,
        resolved_by: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.discrepancy_resolved(
            work_id=work_id,
            resolution=resolution,
            resolved_by=resolved_by,
            correlation_id=correlation_id,
        ))

    async def log_direct_created(
        self,
        work_id: str,
        issue_id: str,
        title: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.work_direct_created(
            work_id=work_id,
            issue_id=issue_id,
            title=title,
            correlation_id=correlation_id,
        ))

    async def log_entry_rejected(
        self,
        operation: str,
        issues: list[dict],
        work_id: Optional[str] = None,
        captured_by: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a capture rejected by validation."""
        await self.log(AuditEventBuilder.entry_rejected(
            operation=operation,
            issues=issues,
            work_id=work_id,
            captured_by=captured_by,
            correlation_id=correlation_id,
        ))

    async def log_invalid_transition(
        self,
        work_id: str,
        operation: str,
        status: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.invalid_transition(
            work_id=work_id,
            operation=operation,
            status=status,
            correlation_id=correlation_id,
        ))

    async def log_concurrent_update(
        self,
        work_id: str,
        expected_version: int,
        actual_version: Optional[int],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.concurrent_update(
            work_id=work_id,
            expected_version=expected_version,
            actual_version=actual_version,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    New correlation ID for one user action.

    Use this at the start of a new user action (e.g., one resolve request).
    Every event logged on behalf of that action carries it.
    """
    return uuid4()
