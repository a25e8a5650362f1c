"""
Reconciliation Service

This module ties the pure double-entry core to a store and the audit log.
Each method is one user action on one work:

1. Load the work from the store
2. Validate the input (two-stage validator, if configured)
3. Run the pure transition (capture / confirm / resolve)
4. Write back with an optimistic version check
5. Audit the result

DESIGN DECISION: Two guards protect the "exactly one comparison per pair of
entries" rule:
- an asyncio.Lock per work id serialises coroutines in this process
- update_work(work, expected_version) rejects writes based on a stale read.
  The Google Sheets store and the JSON file store re-read before they
  compare versions, so this also catches a second process writing to
  the same store between our read and our write

Rejected operations (validation, invalid transition, concurrent update)
are audited with WARNING severity and re-raised unchanged. Nothing is
written when an operation is rejected.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
from uuid import UUID

import structlog

from manuscript_fees.audit.logger import AuditLogger, create_correlation_id
from manuscript_fees.models.manuscript import (
    CheckStatus,
    EntrySnapshot,
    FieldDifference,
    PendingWork,
    ValidationResult,
    Work,
)
from manuscript_fees.reconciliation.capture import capture_first, capture_second
from manuscript_fees.reconciliation.detector import compare, describe_differences
from manuscript_fees.reconciliation.errors import (
    ConcurrentUpdateError,
    InvalidStateError,
    ValidationError,
)
from manuscript_fees.reconciliation.resolution import (
    Resolution,
    confirm,
    describe_resolution,
    direct_create,
    resolve,
)
from manuscript_fees.services.storage.interface import (
    FeeStorageInterface,
    WorkNotFoundError,
)
from manuscript_fees.validation.validator import EntryValidator, Stage


logger = structlog.get_logger(__name__)


class ReconciliationService:
    """
    Async entry point for the double-entry check.

    Flow for one work:
    1. capture_first    → FIRST_CHECK
    2. capture_second   → SECOND_CHECK or DISCREPANCY
    3. confirm/resolve  → CONFIRMED (terminal)

    direct_create skips the check and stores a CONFIRMED work.
    """

    def __init__(
        self,
        storage: FeeStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[EntryValidator] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger or AuditLogger()
        self._validator = validator
        # work id -> (lock, number of coroutines using it)
        self._locks: dict[str, tuple[asyncio.Lock, int]] = {}

    @asynccontextmanager
    async def _work_lock(self, work_id: str) -> AsyncIterator[None]:
        """
        Hold the lock of one work.

        Entries are dropped when the last user leaves, so only works with
        an operation in flight have a lock.
        """
        lock, users = self._locks.get(work_id, (None, 0))
        if lock is None:
            lock = asyncio.Lock()
        self._locks[work_id] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            _, users = self._locks[work_id]
            if users == 1:
                del self._locks[work_id]
            else:
                self._locks[work_id] = (lock, users - 1)

    # =========================================================================
    # INTERNAL STEPS
    # =========================================================================

    async def _load(self, issue_id: str, work_id: str) -> Work:
        work = await self._storage.find_work(issue_id, work_id)
        if work is None:
            raise WorkNotFoundError(f"Work not found: {work_id}")
        return work

    async def _reject(
        self,
        operation: str,
        error: ValidationError,
        work_id: Optional[str],
        captured_by: Optional[str],
        correlation_id: UUID,
    ) -> None:
        await self._audit_logger.log_entry_rejected(
            operation=operation,
            issues=[issue.model_dump() for issue in error.issues],
            work_id=work_id,
            captured_by=captured_by,
            correlation_id=correlation_id,
        )

    async def _validate(
        self,
        operation: str,
        entry: EntrySnapshot,
        captured_by: Optional[str],
        stage: Stage,
        work_id: Optional[str],
        correlation_id: UUID,
    ) -> Optional[ValidationResult]:
        """
        Run the validator, if one is configured.

        Raises:
            ValidationError: If schema validation failed
        """
        if self._validator is None:
            return None

        result = await self._validator.validate(entry, captured_by, stage)
        if not result.schema_valid:
            error = ValidationError(f"{operation} rejected: required input missing", result.errors)
            await self._reject(operation, error, work_id, captured_by, correlation_id)
            raise error

        if result.warnings:
            logger.warning(
                "entry_warnings",
                operation=operation,
                work_id=work_id,
                warnings=result.warnings,
            )
        return result

    async def _write(self, updated: Work, expected_version: int, correlation_id: UUID) -> Work:
        try:
            return await self._storage.update_work(updated, expected_version)
        except ConcurrentUpdateError as e:
            await self._audit_logger.log_concurrent_update(
                work_id=e.work_id,
                expected_version=e.expected_version,
                actual_version=e.actual_version,
                correlation_id=correlation_id,
            )
            raise

    async def _invalid(self, work: Work, error: InvalidStateError, correlation_id: UUID) -> None:
        await self._audit_logger.log_invalid_transition(
            work_id=work.id,
            operation=error.operation,
            status=error.status.value if error.status else "new",
            correlation_id=correlation_id,
        )

    # =========================================================================
    # CAPTURE
    # =========================================================================

    async def capture_first(
        self,
        issue_id: str,
        entry: EntrySnapshot,
        captured_by: str,
        correlation_id: Optional[UUID] = None,
    ) -> Work:
        """
        Record the first entry of a new work.

        Returns:
            The stored work, in FIRST_CHECK

        Raises:
            ValidationError: Capturer name or author missing
            NotFoundError: The issue doesn't exist
        """
        correlation_id = correlation_id or create_correlation_id()

        await self._validate("capture_first", entry, captured_by, "first", None, correlation_id)
        try:
            work = capture_first(issue_id, entry, captured_by)
        except ValidationError as e:
            await self._reject("capture_first", e, None, captured_by, correlation_id)
            raise

        stored = await self._storage.create_work(issue_id, work)

        await self._audit_logger.log_first_entry(
            work_id=stored.id,
            issue_id=issue_id,
            captured_by=stored.first_entry_by,
            correlation_id=correlation_id,
        )
        return stored

    async def capture_second(
        self,
        issue_id: str,
        work_id: str,
        entry: EntrySnapshot,
        captured_by: str,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Work, list[FieldDifference]]:
        """
        Record the second entry of a work and compare it with the first.

        Returns:
            (stored_work, differences)

        Raises:
            WorkNotFoundError: The work doesn't exist
            ValidationError: Capturer name missing
            InvalidStateError: The work is not waiting for a second entry
            ConcurrentUpdateError: Another writer changed the work meanwhile
        """
        correlation_id = correlation_id or create_correlation_id()

        async with self._work_lock(work_id):
            work = await self._load(issue_id, work_id)

            await self._validate(
                "capture_second", entry, captured_by, "second", work_id, correlation_id
            )
            try:
                updated, differences = capture_second(work, entry, captured_by)
            except ValidationError as e:
                await self._reject("capture_second", e, work_id, captured_by, correlation_id)
                raise
            except InvalidStateError as e:
                await self._invalid(work, e, correlation_id)
                raise

            stored = await self._write(updated, work.version, correlation_id)

        await self._audit_logger.log_second_entry(
            work_id=work_id,
            captured_by=stored.second_entry_by,
            differences=[diff.model_dump(by_alias=True) for diff in differences],
            correlation_id=correlation_id,
        )
        return stored, differences

    # =========================================================================
    # CONFIRMATION
    # =========================================================================

    async def confirm(
        self,
        issue_id: str,
        work_id: str,
        confirmed_by: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Work:
        """
        Confirm a work whose two entries matched.

        Raises:
            WorkNotFoundError, InvalidStateError, ConcurrentUpdateError
        """
        correlation_id = correlation_id or create_correlation_id()

        async with self._work_lock(work_id):
            work = await self._load(issue_id, work_id)
            try:
                updated = confirm(work)
            except InvalidStateError as e:
                await self._invalid(work, e, correlation_id)
                raise
            stored = await self._write(updated, work.version, correlation_id)

        await self._audit_logger.log_confirmed(
            work_id=work_id,
            confirmed_by=confirmed_by,
            correlation_id=correlation_id,
        )
        return stored

    async def resolve(
        self,
        issue_id: str,
        work_id: str,
        choice: Resolution,
        resolved_by: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Work:
        """
        Resolve a discrepancy with the first entry, the second entry,
        or a corrected entry.

        Raises:
            WorkNotFoundError, InvalidStateError, ConcurrentUpdateError
        """
        correlation_id = correlation_id or create_correlation_id()

        async with self._work_lock(work_id):
            work = await self._load(issue_id, work_id)
            try:
                updated = resolve(work, choice)
            except InvalidStateError as e:
                await self._invalid(work, e, correlation_id)
                raise
            stored = await self._write(updated, work.version, correlation_id)

        await self._audit_logger.log_resolved(
            work_id=work_id,
            resolution=describe_resolution(choice),
            resolved_by=resolved_by,
            correlation_id=correlation_id,
        )
        return stored

    async def direct_create(
        self,
        issue_id: str,
        entry: EntrySnapshot,
        correlation_id: Optional[UUID] = None,
    ) -> Work:
        """
        Store a confirmed work without the double check.

        Raises:
            ValidationError: Title, author or editor missing (validator only)
            NotFoundError: The issue doesn't exist
        """
        correlation_id = correlation_id or create_correlation_id()

        await self._validate("direct_create", entry, None, "direct", None, correlation_id)
        stored = await self._storage.create_work(issue_id, direct_create(issue_id, entry))

        await self._audit_logger.log_direct_created(
            work_id=stored.id,
            issue_id=issue_id,
            title=stored.title,
            correlation_id=correlation_id,
        )
        return stored

    # =========================================================================
    # READ-ONLY VIEWS
    # =========================================================================

    async def check_entry(
        self,
        entry: EntrySnapshot,
        captured_by: Optional[str] = None,
        stage: Stage = "first",
    ) -> Optional[ValidationResult]:
        """Validate an entry without capturing it. None without a validator."""
        if self._validator is None:
            return None
        return await self._validator.validate(entry, captured_by, stage)

    async def compare(self, issue_id: str, work_id: str) -> list[FieldDifference]:
        """
        Compare the stored entries of a work.

        Raises:
            WorkNotFoundError: The work doesn't exist
            InvalidStateError: The work doesn't have both entries
        """
        work = await self._load(issue_id, work_id)
        if not work.has_both_entries:
            raise InvalidStateError(
                "compare the entries of", work.check_status, "work does not have both entries"
            )
        return compare(work.first_entry, work.second_entry)

    async def difference_report(self, issue_id: str, work_id: str) -> list[dict[str, str]]:
        """Differences of a work with author/editor ids rendered as names."""
        differences = await self.compare(issue_id, work_id)
        authors = await self._storage.list_authors()
        editors = await self._storage.list_editors()
        return describe_differences(differences, authors, editors)

    async def pending_second_entries(self, issue_id: str) -> list[PendingWork]:
        """
        Works of an issue waiting for their second entry.

        Only the title and first capturer are exposed; the first entry's
        values stay hidden from the second capturer.
        """
        works = await self._storage.list_works_by_status(issue_id, CheckStatus.FIRST_CHECK)
        return [
            PendingWork(
                work_id=work.id,
                title=work.title,
                first_entry_by=work.first_entry_by,
                first_entry_at=work.first_entry_at,
            )
            for work in works
        ]

    async def discrepancies(self, issue_id: str) -> list[Work]:
        """Works of an issue waiting for a discrepancy to be resolved."""
        return await self._storage.list_works_by_status(issue_id, CheckStatus.DISCREPANCY)

    async def awaiting_confirmation(self, issue_id: str) -> list[Work]:
        """Works of an issue whose entries matched and await confirmation."""
        return await self._storage.list_works_by_status(issue_id, CheckStatus.SECOND_CHECK)
