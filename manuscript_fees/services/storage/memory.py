"""
In-Memory and Local JSON Storage

DESIGN DECISION: The whole entity graph is small (a publisher's catalog,
not a ledger), so the in-memory store simply keeps one FeeDocument.
Every read returns a deep copy and every write replaces a copy, so
callers can never mutate stored state by accident.

JsonFileFeeStorage is the same store written back to a local JSON file
after each successful write, the local equivalent of a browser's
local storage.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional, TypeVar
from uuid import UUID

import structlog
from pydantic import BaseModel

from manuscript_fees.models.audit import AuditEvent
from manuscript_fees.models.manuscript import (
    Author,
    Editor,
    FeeDocument,
    Issue,
    Magazine,
    Work,
)
from manuscript_fees.services.storage.interface import (
    AuditStorageInterface,
    ConcurrentUpdateError,
    DuplicateError,
    FeeStorageInterface,
    NotFoundError,
    StorageError,
    WorkNotFoundError,
)


logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _copy(model: ModelT) -> ModelT:
    return model.model_copy(deep=True)


class InMemoryFeeStorage(FeeStorageInterface):
    """
    Fee storage held in process memory.

    Used by tests and as the base of the JSON file store.
    """

    def __init__(self, document: Optional[FeeDocument] = None):
        self._document = _copy(document) if document else FeeDocument.empty()

    def _current(self) -> FeeDocument:
        """The document every operation reads and changes."""
        return self._document

    def _persist(self) -> None:
        """Hook called after every write."""
        pass

    def _require_issue(self, issue_id: str) -> Issue:
        issue = self._current().find_issue(issue_id)
        if issue is None:
            raise NotFoundError(f"Issue not found: {issue_id}")
        return issue

    # -- works ----------------------------------------------------------------

    async def create_work(self, issue_id: str, work: Work) -> Work:
        issue = self._require_issue(issue_id)
        if issue.find_work(work.id) is not None:
            raise DuplicateError(f"Work already exists: {work.id}")

        stored = _copy(work)
        stored.issue_id = issue_id
        issue.works.append(stored)
        self._persist()
        return _copy(stored)

    async def update_work(self, work: Work, expected_version: int) -> Work:
        issue = self._current().find_issue(work.issue_id) if work.issue_id else None
        current = issue.find_work(work.id) if issue else None
        if issue is None or current is None:
            raise WorkNotFoundError(f"Work not found: {work.id}")

        if current.version != expected_version:
            raise ConcurrentUpdateError(work.id, expected_version, current.version)

        index = next(i for i, w in enumerate(issue.works) if w.id == work.id)
        issue.works[index] = _copy(work)
        self._persist()
        return _copy(work)

    async def find_work(self, issue_id: str, work_id: str) -> Optional[Work]:
        issue = self._current().find_issue(issue_id)
        work = issue.find_work(work_id) if issue else None
        return _copy(work) if work else None

    async def list_works(self, issue_id: str) -> list[Work]:
        issue = self._require_issue(issue_id)
        return [_copy(work) for work in issue.works]

    async def delete_work(self, issue_id: str, work_id: str) -> bool:
        issue = self._current().find_issue(issue_id)
        work = issue.find_work(work_id) if issue else None
        if work is None:
            return False
        issue.works.remove(work)
        self._persist()
        return True

    # -- authors and editors --------------------------------------------------

    async def find_author(self, author_id: str) -> Optional[Author]:
        author = self._current().find_author(author_id)
        return _copy(author) if author else None

    async def list_authors(self) -> list[Author]:
        return [_copy(author) for author in self._current().authors]

    async def save_author(self, author: Author) -> Author:
        self._upsert(self._current().authors, author)
        self._persist()
        return _copy(author)

    async def delete_author(self, author_id: str) -> bool:
        return self._remove(self._current().authors, author_id)

    async def find_editor(self, editor_id: str) -> Optional[Editor]:
        editor = self._current().find_editor(editor_id)
        return _copy(editor) if editor else None

    async def list_editors(self) -> list[Editor]:
        return [_copy(editor) for editor in self._current().editors]

    async def save_editor(self, editor: Editor) -> Editor:
        self._upsert(self._current().editors, editor)
        self._persist()
        return _copy(editor)

    async def delete_editor(self, editor_id: str) -> bool:
        return self._remove(self._current().editors, editor_id)

    # -- magazines and issues -------------------------------------------------

    async def list_magazines(self) -> list[Magazine]:
        return [_copy(magazine) for magazine in self._current().magazines]

    async def find_magazine(self, magazine_id: str) -> Optional[Magazine]:
        magazine = self._current().find_magazine(magazine_id)
        return _copy(magazine) if magazine else None

    async def save_magazine(self, magazine: Magazine) -> Magazine:
        document = self._current()
        existing = document.find_magazine(magazine.id)
        if existing is None:
            stored = _copy(magazine)
            document.magazines.append(stored)
        else:
            existing.name = magazine.name
            stored = existing
        self._persist()
        return _copy(stored)

    async def delete_magazine(self, magazine_id: str) -> bool:
        return self._remove(self._current().magazines, magazine_id)

    async def find_issue(self, issue_id: str) -> Optional[Issue]:
        issue = self._current().find_issue(issue_id)
        return _copy(issue) if issue else None

    async def save_issue(self, magazine_id: str, issue: Issue) -> Issue:
        magazine = self._current().find_magazine(magazine_id)
        if magazine is None:
            raise NotFoundError(f"Magazine not found: {magazine_id}")

        existing = magazine.find_issue(issue.id)
        if existing is None:
            stored = _copy(issue)
            stored.magazine_id = magazine_id
            for work in stored.works:
                work.issue_id = stored.id
            magazine.issues.append(stored)
        else:
            existing.issue_number = issue.issue_number
            existing.release_date = issue.release_date
            stored = existing
        self._persist()
        return _copy(stored)

    async def delete_issue(self, issue_id: str) -> bool:
        for magazine in self._current().magazines:
            issue = magazine.find_issue(issue_id)
            if issue is not None:
                magazine.issues.remove(issue)
                self._persist()
                return True
        return False

    # -- whole document -------------------------------------------------------

    async def load_document(self) -> FeeDocument:
        return _copy(self._current())

    async def replace_document(self, document: FeeDocument) -> None:
        self._document = _copy(document)
        self._persist()

    # -- helpers --------------------------------------------------------------

    @staticmethod
    def _upsert(items: list, item: BaseModel) -> None:
        for index, existing in enumerate(items):
            if existing.id == item.id:
                items[index] = _copy(item)
                return
        items.append(_copy(item))

    def _remove(self, items: list, item_id: str) -> bool:
        for existing in items:
            if existing.id == item_id:
                items.remove(existing)
                self._persist()
                return True
        return False


class JsonFileFeeStorage(InMemoryFeeStorage):
    """
    Fee storage persisted wholesale to a local JSON file.

    The file has the same shape as the JSON export, so an exported file
    can be used directly as a data file and vice versa.

    Every operation first re-reads the file if someone else rewrote it
    since our last read or write, so version checks and catalog changes
    see the other writer's data. A write that fails leaves both the file
    and this store as they were.

    There is no lock across processes: two processes writing at the same
    instant can still lose one of the writes. Run one writing process per
    data file.
    """

    def __init__(self, path: Path):
        self._path = Path(path)
        # Text of the file as we last read or wrote it
        self._seen = self._read_text()
        super().__init__(self._parse(self._seen))
        self._saved = _copy(self._document)

    def _read_text(self) -> Optional[str]:
        try:
            return self._path.read_text(encoding="utf-8")
        except (FileNotFoundError, NotADirectoryError):
            return None
        except OSError as e:
            raise StorageError(f"Failed to read data file {self._path}: {e}")

    def _parse(self, text: Optional[str]) -> Optional[FeeDocument]:
        if text is None:
            return None
        try:
            return FeeDocument.model_validate_json(text)
        except ValueError as e:
            raise StorageError(f"Failed to read data file {self._path}: {e}")

    def _current(self) -> FeeDocument:
        text = self._read_text()
        if text != self._seen:
            logger.info("data_file_reloaded", path=str(self._path))
            self._document = self._parse(text) or FeeDocument.empty()
            self._saved = _copy(self._document)
            self._seen = text
        return self._document

    def _persist(self) -> None:
        content = json.dumps(self._document.to_json_dict(), ensure_ascii=False, indent=2)
        directory = self._path.parent
        tmp_path = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            # Write to a temp file first so a crash never leaves half a file
            fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(tmp_path, self._path)
        except OSError as e:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            # Back to what the file holds
            self._document = _copy(self._saved)
            raise StorageError(f"Failed to write data file {self._path}: {e}")

        self._saved = _copy(self._document)
        self._seen = content


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit storage held in process memory."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
