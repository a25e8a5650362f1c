"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the double-entry check free of persistence concerns
2. Use in-memory storage for testing
3. Swap a local JSON file for Google Sheets without touching business logic
4. Persist entities one at a time instead of rewriting one global tree

The interface is intentionally simple - we're not building a full ORM.
Just the operations the fee workflow needs, scoped per entity.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from manuscript_fees.models.audit import AuditEvent
from manuscript_fees.models.manuscript import (
    Author,
    CheckStatus,
    Editor,
    FeeDocument,
    Issue,
    Magazine,
    Work,
)


class FeeStorageInterface(ABC):
    """
    Abstract interface for manuscript-fee storage.

    Any storage implementation (local JSON, Google Sheets, ...)
    must implement these methods.

    Ownership rules every implementation must honor:
    - deleting a magazine deletes its issues and their works
    - deleting an issue deletes its works
    - deleting an author or editor never touches works
    """

    # -- works (consumed by the double-entry check) -------------------------

    @abstractmethod
    async def create_work(self, issue_id: str, work: Work) -> Work:
        """
        Append a new work to an issue.

        Returns:
            The stored work (with issue_id set)

        Raises:
            NotFoundError: If the issue doesn't exist
            DuplicateError: If a work with the same id exists
        """
        pass

    @abstractmethod
    async def update_work(self, work: Work, expected_version: int) -> Work:
        """
        Replace a stored work, if nobody changed it since it was read.

        Args:
            work: The new state of the work (its version already bumped)
            expected_version: The version the caller read

        Returns:
            The stored work

        Raises:
            WorkNotFoundError: If the work doesn't exist
            ConcurrentUpdateError: If the stored version != expected_version
        """
        pass

    @abstractmethod
    async def find_work(self, issue_id: str, work_id: str) -> Optional[Work]:
        """Retrieve a work, or None."""
        pass

    @abstractmethod
    async def list_works(self, issue_id: str) -> list[Work]:
        """
        List the works of an issue in creation order.

        Raises:
            NotFoundError: If the issue doesn't exist
        """
        pass

    async def list_works_by_status(self, issue_id: str, status: CheckStatus) -> list[Work]:
        """List the works of an issue that are in a given status."""
        works = await self.list_works(issue_id)
        return [work for work in works if work.check_status == status]

    @abstractmethod
    async def delete_work(self, issue_id: str, work_id: str) -> bool:
        """Delete a work. Returns False if it didn't exist."""
        pass

    # -- authors and editors ------------------------------------------------

    @abstractmethod
    async def find_author(self, author_id: str) -> Optional[Author]:
        pass

    @abstractmethod
    async def list_authors(self) -> list[Author]:
        pass

    @abstractmethod
    async def save_author(self, author: Author) -> Author:
        """Insert or replace an author (matched by id)."""
        pass

    @abstractmethod
    async def delete_author(self, author_id: str) -> bool:
        pass

    @abstractmethod
    async def find_editor(self, editor_id: str) -> Optional[Editor]:
        pass

    @abstractmethod
    async def list_editors(self) -> list[Editor]:
        pass

    @abstractmethod
    async def save_editor(self, editor: Editor) -> Editor:
        """Insert or replace an editor (matched by id)."""
        pass

    @abstractmethod
    async def delete_editor(self, editor_id: str) -> bool:
        pass

    # -- magazines and issues -----------------------------------------------

    @abstractmethod
    async def list_magazines(self) -> list[Magazine]:
        """List magazines with their issues and works."""
        pass

    @abstractmethod
    async def find_magazine(self, magazine_id: str) -> Optional[Magazine]:
        pass

    @abstractmethod
    async def save_magazine(self, magazine: Magazine) -> Magazine:
        """
        Insert a magazine, or rename an existing one.

        Issues are never written through this method; use save_issue.
        """
        pass

    @abstractmethod
    async def delete_magazine(self, magazine_id: str) -> bool:
        """Delete a magazine with all of its issues and works."""
        pass

    @abstractmethod
    async def find_issue(self, issue_id: str) -> Optional[Issue]:
        """Retrieve an issue with its works."""
        pass

    @abstractmethod
    async def save_issue(self, magazine_id: str, issue: Issue) -> Issue:
        """
        Insert an issue into a magazine, or update its label and date.

        Works are never written through this method.

        Raises:
            NotFoundError: If the magazine doesn't exist
        """
        pass

    @abstractmethod
    async def delete_issue(self, issue_id: str) -> bool:
        """Delete an issue with all of its works."""
        pass

    # -- whole document -----------------------------------------------------

    @abstractmethod
    async def load_document(self) -> FeeDocument:
        """Read the whole entity graph."""
        pass

    @abstractmethod
    async def replace_document(self, document: FeeDocument) -> None:
        """Replace everything with the given entity graph (import)."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for a correlation ID, in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Get all events for a specific entity, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class WorkNotFoundError(NotFoundError):
    """Work not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class ConcurrentUpdateError(StorageError):
    """The stored work changed since it was read."""

    def __init__(self, work_id: str, expected_version: int, actual_version: Optional[int]):
        self.work_id = work_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Work {work_id} changed concurrently "
            f"(expected version {expected_version}, found {actual_version})"
        )
