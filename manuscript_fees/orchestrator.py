"""
Main Orchestrator for Manuscript Fees

This module ties together all the components and defines the
administrative flows around the double-entry check:
1. Catalog maintenance (authors, editors, magazines, issues)
2. Administrative editing and deletion of works
3. Export (JSON / CSV) and import (JSON) of the whole entity graph

DESIGN DECISION: The orchestrator enforces the boundaries:
- Editing a work here is NOT a reconciliation transition; status and
  entries are left untouched, only the authoritative fields change
- An import replaces the data only after the whole document validated
- Every change is audited

The double-entry check itself lives in ReconciliationService;
create_app_components wires both against the configured store.
"""

from datetime import date
from typing import Optional
from uuid import UUID

import structlog

from manuscript_fees.audit import AuditLogger, configure_logging, create_correlation_id
from manuscript_fees.config import get_settings
from manuscript_fees.exports import ImportFormatError, export_csv, export_json, import_json
from manuscript_fees.models.audit import AuditEventBuilder
from manuscript_fees.models.manuscript import (
    Author,
    Editor,
    EntrySnapshot,
    FeeDocument,
    Issue,
    Magazine,
    Work,
)
from manuscript_fees.queries import FeeReporter
from manuscript_fees.reconciliation import ReconciliationService
from manuscript_fees.services.storage import (
    AuditStorageInterface,
    FeeStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsFeeStorage,
    InMemoryAuditStorage,
    InMemoryFeeStorage,
    JsonFileFeeStorage,
    NotFoundError,
    WorkNotFoundError,
)
from manuscript_fees.validation import EntryValidator


logger = structlog.get_logger(__name__)


class CatalogManager:
    """
    Orchestrates everything outside the double-entry check.

    Authors and editors can be deleted while works still reference them;
    those works keep the dangling id and show up as "unknown" with fee 0.
    Deleting a magazine or an issue deletes everything it owns.
    """

    def __init__(
        self,
        storage: FeeStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger or AuditLogger()

    async def _catalog_changed(
        self,
        entity_type: str,
        entity_id: str,
        name: str,
        deleted: bool = False,
    ) -> None:
        await self._audit_logger.log(AuditEventBuilder.catalog_changed(
            entity_type=entity_type,
            entity_id=entity_id,
            name=name,
            deleted=deleted,
        ))

    # =========================================================================
    # AUTHORS
    # =========================================================================

    async def list_authors(self) -> list[Author]:
        return await self._storage.list_authors()

    async def add_author(self, name: str, rate_per_page_1c: int) -> Author:
        author = await self._storage.save_author(
            Author(name=name, rate_per_page_1c=rate_per_page_1c)
        )
        await self._catalog_changed("author", author.id, author.name)
        return author

    async def update_author(
        self,
        author_id: str,
        name: Optional[str] = None,
        rate_per_page_1c: Optional[int] = None,
    ) -> Author:
        """
        Change an author's name and/or base rate.

        Fees are always computed from the current rate, so a rate change
        applies to every work of the author.

        Raises:
            NotFoundError: If the author doesn't exist
        """
        author = await self._storage.find_author(author_id)
        if author is None:
            raise NotFoundError(f"Author not found: {author_id}")

        updated = Author(
            id=author.id,
            name=name if name is not None else author.name,
            rate_per_page_1c=(
                rate_per_page_1c if rate_per_page_1c is not None else author.rate_per_page_1c
            ),
        )
        saved = await self._storage.save_author(updated)
        await self._catalog_changed("author", saved.id, saved.name)
        return saved

    async def delete_author(self, author_id: str) -> bool:
        author = await self._storage.find_author(author_id)
        deleted = await self._storage.delete_author(author_id)
        if deleted:
            await self._catalog_changed("author", author_id, author.name if author else "", True)
        return deleted

    # =========================================================================
    # EDITORS
    # =========================================================================

    async def list_editors(self) -> list[Editor]:
        return await self._storage.list_editors()

    async def add_editor(self, name: str) -> Editor:
        editor = await self._storage.save_editor(Editor(name=name))
        await self._catalog_changed("editor", editor.id, editor.name)
        return editor

    async def update_editor(self, editor_id: str, name: str) -> Editor:
        """
        Rename an editor.

        Raises:
            NotFoundError: If the editor doesn't exist
        """
        if await self._storage.find_editor(editor_id) is None:
            raise NotFoundError(f"Editor not found: {editor_id}")

        saved = await self._storage.save_editor(Editor(id=editor_id, name=name))
        await self._catalog_changed("editor", saved.id, saved.name)
        return saved

    async def delete_editor(self, editor_id: str) -> bool:
        editor = await self._storage.find_editor(editor_id)
        deleted = await self._storage.delete_editor(editor_id)
        if deleted:
            await self._catalog_changed("editor", editor_id, editor.name if editor else "", True)
        return deleted

    # =========================================================================
    # MAGAZINES AND ISSUES
    # =========================================================================

    async def list_magazines(self) -> list[Magazine]:
        return await self._storage.list_magazines()

    async def add_magazine(self, name: str) -> Magazine:
        magazine = await self._storage.save_magazine(Magazine(name=name))
        await self._catalog_changed("magazine", magazine.id, magazine.name)
        return magazine

    async def rename_magazine(self, magazine_id: str, name: str) -> Magazine:
        """
        Raises:
            NotFoundError: If the magazine doesn't exist
        """
        if await self._storage.find_magazine(magazine_id) is None:
            raise NotFoundError(f"Magazine not found: {magazine_id}")

        saved = await self._storage.save_magazine(Magazine(id=magazine_id, name=name))
        await self._catalog_changed("magazine", saved.id, saved.name)
        return saved

    async def delete_magazine(self, magazine_id: str) -> bool:
        """Delete a magazine with all its issues and works."""
        magazine = await self._storage.find_magazine(magazine_id)
        deleted = await self._storage.delete_magazine(magazine_id)
        if deleted:
            await self._catalog_changed(
                "magazine", magazine_id, magazine.name if magazine else "", True
            )
        return deleted

    async def add_issue(self, magazine_id: str, issue_number: str, release_date: date) -> Issue:
        """
        Raises:
            NotFoundError: If the magazine doesn't exist
        """
        issue = await self._storage.save_issue(
            magazine_id,
            Issue(magazine_id=magazine_id, issue_number=issue_number, release_date=release_date),
        )
        await self._catalog_changed("issue", issue.id, issue.issue_number)
        return issue

    async def update_issue(
        self,
        issue_id: str,
        issue_number: Optional[str] = None,
        release_date: Optional[date] = None,
    ) -> Issue:
        """
        Change an issue's label and/or release date. Works are untouched.

        Raises:
            NotFoundError: If the issue doesn't exist
        """
        issue = await self._storage.find_issue(issue_id)
        if issue is None:
            raise NotFoundError(f"Issue not found: {issue_id}")

        updated = issue.model_copy(update={
            "issue_number": issue_number if issue_number is not None else issue.issue_number,
            "release_date": release_date if release_date is not None else issue.release_date,
        })
        saved = await self._storage.save_issue(issue.magazine_id, updated)
        await self._catalog_changed("issue", saved.id, saved.issue_number)
        return saved

    async def find_issue(self, issue_id: str) -> Optional[Issue]:
        return await self._storage.find_issue(issue_id)

    async def delete_issue(self, issue_id: str) -> bool:
        """Delete an issue with all its works."""
        issue = await self._storage.find_issue(issue_id)
        deleted = await self._storage.delete_issue(issue_id)
        if deleted:
            await self._catalog_changed("issue", issue_id, issue.issue_number if issue else "", True)
        return deleted

    # =========================================================================
    # WORKS (administrative)
    # =========================================================================

    async def list_works(self, issue_id: str) -> list[Work]:
        return await self._storage.list_works(issue_id)

    async def edit_work(
        self,
        issue_id: str,
        work_id: str,
        entry: EntrySnapshot,
        edited_by: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Work:
        """
        Overwrite the authoritative fields of a work.

        Status and first/second entries are kept as they are. Works in any
        status can be edited, confirmed ones included.

        Raises:
            WorkNotFoundError: If the work doesn't exist
            ConcurrentUpdateError: If the work changed since it was read
        """
        correlation_id = correlation_id or create_correlation_id()

        work = await self._storage.find_work(issue_id, work_id)
        if work is None:
            raise WorkNotFoundError(f"Work not found: {work_id}")

        updated = work.model_copy(update={
            **entry.model_dump(),
            "version": work.version + 1,
        })
        saved = await self._storage.update_work(updated, expected_version=work.version)

        changed = [
            name for name in EntrySnapshot.model_fields
            if getattr(work, name) != getattr(saved, name)
        ]
        await self._audit_logger.log(AuditEventBuilder.work_changed(
            work_id=work_id,
            details={"changed_fields": changed, "edited_by": edited_by},
            correlation_id=correlation_id,
        ))
        return saved

    async def delete_work(self, issue_id: str, work_id: str) -> bool:
        deleted = await self._storage.delete_work(issue_id, work_id)
        if deleted:
            await self._audit_logger.log(AuditEventBuilder.work_changed(
                work_id=work_id,
                deleted=True,
                details={"issue_id": issue_id},
            ))
        return deleted

    # =========================================================================
    # EXPORT / IMPORT
    # =========================================================================

    async def export_json(self) -> str:
        document = await self._storage.load_document()
        await self._audit_logger.log(AuditEventBuilder.data_exported(
            export_format="json",
            work_count=sum(1 for _ in document.iter_works()),
        ))
        return export_json(document)

    async def export_csv(self) -> str:
        document = await self._storage.load_document()
        await self._audit_logger.log(AuditEventBuilder.data_exported(
            export_format="csv",
            work_count=sum(1 for _ in document.iter_works()),
        ))
        return export_csv(document)

    async def import_json(self, text: str) -> FeeDocument:
        """
        Replace all data with an imported JSON document.

        Nothing is replaced unless the whole document is valid.

        Raises:
            ImportFormatError: If the text is not a valid fee document
        """
        try:
            document = import_json(text)
        except ImportFormatError as e:
            await self._audit_logger.log(AuditEventBuilder.import_failed(str(e)))
            raise

        await self._storage.replace_document(document)
        await self._audit_logger.log(AuditEventBuilder.data_imported(
            magazine_count=len(document.magazines),
            work_count=sum(1 for _ in document.iter_works()),
        ))
        return document


def create_storage(
    backend: Optional[str] = None,
) -> tuple[FeeStorageInterface, Optional[AuditStorageInterface]]:
    """
    Create the fee store and audit store for a backend.

    Args:
        backend: "memory", "json" or "google_sheets".
                 Defaults to the storage_backend setting.

    Returns:
        (fee_storage, audit_storage). audit_storage is None for the JSON
        file backend, where audit events only go to the local log.
    """
    settings = get_settings()
    backend = backend or settings.app.storage_backend

    if backend == "memory":
        return InMemoryFeeStorage(), InMemoryAuditStorage()
    if backend == "json":
        return JsonFileFeeStorage(settings.app.data_file), None
    if backend == "google_sheets":
        client = GoogleSheetsClient(settings.google_sheets)
        return GoogleSheetsFeeStorage(client), GoogleSheetsAuditStorage(client)
    raise ValueError(f"Unknown storage backend: {backend}")


def create_app_components(
    backend: Optional[str] = None,
) -> tuple[ReconciliationService, CatalogManager, FeeReporter]:
    """
    Factory function to create all application components.

    Args:
        backend: Storage backend, see create_storage.

    Returns:
        (reconciliation_service, catalog_manager, fee_reporter)
    """
    configure_logging(get_settings().app.log_level)
    storage, audit_storage = create_storage(backend)
    audit_logger = AuditLogger(audit_storage)

    logger.info(
        "app_components_created",
        backend=backend or get_settings().app.storage_backend,
        audit_persisted=audit_storage is not None,
    )

    reconciliation = ReconciliationService(
        storage=storage,
        audit_logger=audit_logger,
        validator=EntryValidator(storage),
    )
    catalog = CatalogManager(storage=storage, audit_logger=audit_logger)
    return reconciliation, catalog, FeeReporter(storage)
