"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as the shared (remote) backend
because:
1. Both people doing the double entry can work from different machines
2. Editorial staff can view fee data directly in Sheets
3. No database setup required
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (a publisher's catalog is fine)
- No transactions: the version check in update_work reads then writes,
  so it narrows the race window but cannot close it across processes
- Limited query capabilities (we filter in Python)

One worksheet per entity. Owner references are plain id columns;
entry snapshots are JSON-serialized into a single cell each.
"""

import json
from datetime import date, datetime
from typing import Callable, Optional, TypeVar
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from manuscript_fees.config import GoogleSheetsSettings, get_settings
from manuscript_fees.models.audit import AuditEvent, AuditEventType, AuditSeverity
from manuscript_fees.models.manuscript import (
    Author,
    CheckStatus,
    Editor,
    EntrySnapshot,
    FeeDocument,
    Issue,
    Magazine,
    Work,
)
from manuscript_fees.services.storage.interface import (
    AuditStorageInterface,
    ConcurrentUpdateError,
    ConnectionError,
    DuplicateError,
    FeeStorageInterface,
    NotFoundError,
    StorageError,
    WorkNotFoundError,
)


# Column mappings per worksheet
AUTHOR_COLUMNS = ["id", "name", "rate_per_page_1c"]
EDITOR_COLUMNS = ["id", "name"]
MAGAZINE_COLUMNS = ["id", "name"]
ISSUE_COLUMNS = ["id", "magazine_id", "issue_number", "release_date"]
WORK_COLUMNS = [
    "id",
    "issue_id",
    "title",
    "author_id",
    "editor_id",
    "pages_1c",
    "pages_4c",
    "start_page",
    "end_page",
    "check_status",
    "first_entry_json",
    "first_entry_by",
    "first_entry_at",
    "second_entry_json",
    "second_entry_by",
    "second_entry_at",
    "confirmed_at",
    "version",
]
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "actor",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

SHEET_COLUMNS = {
    "authors": AUTHOR_COLUMNS,
    "editors": EDITOR_COLUMNS,
    "magazines": MAGAZINE_COLUMNS,
    "issues": ISSUE_COLUMNS,
    "works": WORK_COLUMNS,
    "audit": AUDIT_COLUMNS,
}

# Only transient API failures are retried; our own errors propagate at once
api_retry = retry(
    retry=retry_if_exception_type(gspread.exceptions.APIError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)

T = TypeVar("T")


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _sheet_name(self, kind: str) -> str:
        return {
            "authors": self._settings.authors_sheet_name,
            "editors": self._settings.editors_sheet_name,
            "magazines": self._settings.magazines_sheet_name,
            "issues": self._settings.issues_sheet_name,
            "works": self._settings.works_sheet_name,
            "audit": self._settings.audit_sheet_name,
        }[kind]

    def get_worksheet(self, kind: str) -> gspread.Worksheet:
        """Get or create the worksheet for an entity kind (e.g. 'works')."""
        spreadsheet = self.get_spreadsheet()
        name = self._sheet_name(kind)
        columns = SHEET_COLUMNS[kind]
        try:
            sheet = spreadsheet.worksheet(name)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=name,
                rows=5000 if kind in ("works", "audit") else 1000,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet


# =============================================================================
# ROW CONVERSION
# =============================================================================

def _cell(row: list, index: int) -> str:
    """Handle missing trailing cells gracefully."""
    try:
        return row[index] or ""
    except IndexError:
        return ""


def _opt_int(value: str) -> Optional[int]:
    return int(value) if value else None


def _opt_datetime(value: str) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _iso(value: Optional[datetime]) -> str:
    return value.isoformat() if value else ""


def _snapshot_json(snapshot: Optional[EntrySnapshot]) -> str:
    if snapshot is None:
        return ""
    return snapshot.model_dump_json(by_alias=True, exclude_none=True)


def _snapshot_from_json(value: str) -> Optional[EntrySnapshot]:
    return EntrySnapshot.model_validate_json(value) if value else None


def work_to_row(work: Work) -> list:
    """Convert a Work to a spreadsheet row."""
    return [
        work.id,
        work.issue_id or "",
        work.title,
        work.author_id or "",
        work.editor_id or "",
        str(work.pages_1c),
        str(work.pages_4c),
        str(work.start_page) if work.start_page is not None else "",
        str(work.end_page) if work.end_page is not None else "",
        work.check_status.value,
        _snapshot_json(work.first_entry),
        work.first_entry_by or "",
        _iso(work.first_entry_at),
        _snapshot_json(work.second_entry),
        work.second_entry_by or "",
        _iso(work.second_entry_at),
        _iso(work.confirmed_at),
        str(work.version),
    ]


def row_to_work(row: list) -> Work:
    """Convert a spreadsheet row to a Work."""
    return Work(
        id=_cell(row, 0),
        issue_id=_cell(row, 1) or None,
        title=_cell(row, 2),
        author_id=_cell(row, 3) or None,
        editor_id=_cell(row, 4) or None,
        pages_1c=int(_cell(row, 5) or 0),
        pages_4c=int(_cell(row, 6) or 0),
        start_page=_opt_int(_cell(row, 7)),
        end_page=_opt_int(_cell(row, 8)),
        check_status=CheckStatus(_cell(row, 9) or CheckStatus.CONFIRMED.value),
        first_entry=_snapshot_from_json(_cell(row, 10)),
        first_entry_by=_cell(row, 11) or None,
        first_entry_at=_opt_datetime(_cell(row, 12)),
        second_entry=_snapshot_from_json(_cell(row, 13)),
        second_entry_by=_cell(row, 14) or None,
        second_entry_at=_opt_datetime(_cell(row, 15)),
        confirmed_at=_opt_datetime(_cell(row, 16)),
        version=int(_cell(row, 17) or 1),
    )


def author_to_row(author: Author) -> list:
    return [author.id, author.name, str(author.rate_per_page_1c)]


def row_to_author(row: list) -> Author:
    return Author(
        id=_cell(row, 0),
        name=_cell(row, 1),
        rate_per_page_1c=int(_cell(row, 2) or 0),
    )


def editor_to_row(editor: Editor) -> list:
    return [editor.id, editor.name]


def row_to_editor(row: list) -> Editor:
    return Editor(id=_cell(row, 0), name=_cell(row, 1))


def issue_to_row(issue: Issue) -> list:
    return [
        issue.id,
        issue.magazine_id or "",
        issue.issue_number,
        issue.release_date.isoformat(),
    ]


def row_to_issue(row: list) -> Issue:
    return Issue(
        id=_cell(row, 0),
        magazine_id=_cell(row, 1) or None,
        issue_number=_cell(row, 2),
        release_date=date.fromisoformat(_cell(row, 3)),
    )


# =============================================================================
# FEE STORAGE
# =============================================================================

class GoogleSheetsFeeStorage(FeeStorageInterface):
    """
    Google Sheets implementation of fee storage.

    Rows keep creation order, which is the order issues and works are
    listed in.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    # -- low-level sheet access ---------------------------------------------

    @api_retry
    def _rows(self, kind: str) -> list[list]:
        """All data rows of a worksheet (header and blank rows skipped)."""
        sheet = self._client.get_worksheet(kind)
        return [row for row in sheet.get_all_values()[1:] if row and row[0]]

    @api_retry
    def _append(self, kind: str, row: list) -> None:
        sheet = self._client.get_worksheet(kind)
        sheet.append_row(row, value_input_option="RAW")

    @api_retry
    def _find_row_index(self, kind: str, entity_id: str) -> Optional[int]:
        """1-based sheet row number of an entity, or None."""
        sheet = self._client.get_worksheet(kind)
        for idx, row in enumerate(sheet.get_all_values()[1:], start=2):  # Row 1 is header
            if row and row[0] == entity_id:
                return idx
        return None

    @api_retry
    def _write_row(self, kind: str, row_index: int, row: list) -> None:
        sheet = self._client.get_worksheet(kind)
        sheet.update(range_name=f"A{row_index}", values=[row], raw=True)

    @api_retry
    def _delete_where(self, kind: str, predicate: Callable[[list], bool]) -> int:
        """Delete every row matching predicate. Returns how many were deleted."""
        sheet = self._client.get_worksheet(kind)
        indexes = [
            idx for idx, row in enumerate(sheet.get_all_values()[1:], start=2)
            if row and row[0] and predicate(row)
        ]
        # Bottom-up so earlier indexes stay valid
        for idx in reversed(indexes):
            sheet.delete_rows(idx)
        return len(indexes)

    @api_retry
    def _rewrite(self, kind: str, rows: list[list]) -> None:
        sheet = self._client.get_worksheet(kind)
        sheet.clear()
        sheet.append_rows([SHEET_COLUMNS[kind]] + rows, value_input_option="RAW")

    def _upsert(self, kind: str, entity_id: str, row: list) -> None:
        idx = self._find_row_index(kind, entity_id)
        if idx is None:
            self._append(kind, row)
        else:
            self._write_row(kind, idx, row)

    def _guard(self, operation: str, fn: Callable[[], T]) -> T:
        """Wrap backend failures in StorageError; our own errors pass through."""
        try:
            return fn()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to {operation}: {e}")

    # -- works ----------------------------------------------------------------

    async def create_work(self, issue_id: str, work: Work) -> Work:
        def _create() -> Work:
            if self._find_row_index("issues", issue_id) is None:
                raise NotFoundError(f"Issue not found: {issue_id}")
            if self._find_row_index("works", work.id) is not None:
                raise DuplicateError(f"Work already exists: {work.id}")
            stored = work.model_copy(update={"issue_id": issue_id})
            self._append("works", work_to_row(stored))
            return stored

        return self._guard("create work", _create)

    async def update_work(self, work: Work, expected_version: int) -> Work:
        def _update() -> Work:
            sheet_rows = self._client.get_worksheet("works").get_all_values()
            for idx, row in enumerate(sheet_rows[1:], start=2):
                if row and row[0] == work.id:
                    current_version = int(_cell(row, 17) or 1)
                    if current_version != expected_version:
                        raise ConcurrentUpdateError(work.id, expected_version, current_version)
                    self._write_row("works", idx, work_to_row(work))
                    return work
            raise WorkNotFoundError(f"Work not found: {work.id}")

        return self._guard("update work", _update)

    async def find_work(self, issue_id: str, work_id: str) -> Optional[Work]:
        def _find() -> Optional[Work]:
            for row in self._rows("works"):
                if row[0] == work_id and _cell(row, 1) == issue_id:
                    return row_to_work(row)
            return None

        return self._guard("get work", _find)

    async def list_works(self, issue_id: str) -> list[Work]:
        def _list() -> list[Work]:
            if self._find_row_index("issues", issue_id) is None:
                raise NotFoundError(f"Issue not found: {issue_id}")
            return [row_to_work(row) for row in self._rows("works") if _cell(row, 1) == issue_id]

        return self._guard("list works", _list)

    async def delete_work(self, issue_id: str, work_id: str) -> bool:
        return self._guard("delete work", lambda: self._delete_where(
            "works", lambda row: row[0] == work_id and _cell(row, 1) == issue_id
        ) > 0)

    # -- authors and editors --------------------------------------------------

    async def find_author(self, author_id: str) -> Optional[Author]:
        authors = await self.list_authors()
        return next((a for a in authors if a.id == author_id), None)

    async def list_authors(self) -> list[Author]:
        return self._guard("list authors", lambda: [row_to_author(r) for r in self._rows("authors")])

    async def save_author(self, author: Author) -> Author:
        self._guard("save author", lambda: self._upsert("authors", author.id, author_to_row(author)))
        return author

    async def delete_author(self, author_id: str) -> bool:
        return self._guard("delete author", lambda: self._delete_where(
            "authors", lambda row: row[0] == author_id
        ) > 0)

    async def find_editor(self, editor_id: str) -> Optional[Editor]:
        editors = await self.list_editors()
        return next((e for e in editors if e.id == editor_id), None)

    async def list_editors(self) -> list[Editor]:
        return self._guard("list editors", lambda: [row_to_editor(r) for r in self._rows("editors")])

    async def save_editor(self, editor: Editor) -> Editor:
        self._guard("save editor", lambda: self._upsert("editors", editor.id, editor_to_row(editor)))
        return editor

    async def delete_editor(self, editor_id: str) -> bool:
        return self._guard("delete editor", lambda: self._delete_where(
            "editors", lambda row: row[0] == editor_id
        ) > 0)

    # -- magazines and issues -------------------------------------------------

    def _assemble_magazines(self) -> list[Magazine]:
        works_by_issue: dict[str, list[Work]] = {}
        for row in self._rows("works"):
            work = row_to_work(row)
            works_by_issue.setdefault(work.issue_id or "", []).append(work)

        issues_by_magazine: dict[str, list[Issue]] = {}
        for row in self._rows("issues"):
            issue = row_to_issue(row)
            issue.works = works_by_issue.get(issue.id, [])
            issues_by_magazine.setdefault(issue.magazine_id or "", []).append(issue)

        return [
            Magazine(id=row[0], name=_cell(row, 1), issues=issues_by_magazine.get(row[0], []))
            for row in self._rows("magazines")
        ]

    async def list_magazines(self) -> list[Magazine]:
        return self._guard("list magazines", self._assemble_magazines)

    async def find_magazine(self, magazine_id: str) -> Optional[Magazine]:
        magazines = await self.list_magazines()
        return next((m for m in magazines if m.id == magazine_id), None)

    async def save_magazine(self, magazine: Magazine) -> Magazine:
        self._guard("save magazine", lambda: self._upsert(
            "magazines", magazine.id, [magazine.id, magazine.name]
        ))
        return magazine

    async def delete_magazine(self, magazine_id: str) -> bool:
        def _delete() -> bool:
            issue_ids = {
                row[0] for row in self._rows("issues") if _cell(row, 1) == magazine_id
            }
            deleted = self._delete_where("magazines", lambda row: row[0] == magazine_id) > 0
            if issue_ids:
                self._delete_where("works", lambda row: _cell(row, 1) in issue_ids)
                self._delete_where("issues", lambda row: row[0] in issue_ids)
            return deleted

        return self._guard("delete magazine", _delete)

    async def find_issue(self, issue_id: str) -> Optional[Issue]:
        def _find() -> Optional[Issue]:
            for row in self._rows("issues"):
                if row[0] == issue_id:
                    issue = row_to_issue(row)
                    issue.works = [
                        row_to_work(w) for w in self._rows("works") if _cell(w, 1) == issue_id
                    ]
                    return issue
            return None

        return self._guard("get issue", _find)

    async def save_issue(self, magazine_id: str, issue: Issue) -> Issue:
        def _save() -> Issue:
            if self._find_row_index("magazines", magazine_id) is None:
                raise NotFoundError(f"Magazine not found: {magazine_id}")
            stored = issue.model_copy(update={"magazine_id": magazine_id})
            self._upsert("issues", stored.id, issue_to_row(stored))
            return stored

        return self._guard("save issue", _save)

    async def delete_issue(self, issue_id: str) -> bool:
        def _delete() -> bool:
            deleted = self._delete_where("issues", lambda row: row[0] == issue_id) > 0
            self._delete_where("works", lambda row: _cell(row, 1) == issue_id)
            return deleted

        return self._guard("delete issue", _delete)

    # -- whole document -------------------------------------------------------

    async def load_document(self) -> FeeDocument:
        return FeeDocument(
            magazines=await self.list_magazines(),
            authors=await self.list_authors(),
            editors=await self.list_editors(),
        )

    async def replace_document(self, document: FeeDocument) -> None:
        def _replace() -> None:
            issues = [i for m in document.magazines for i in m.issues]
            self._rewrite("authors", [author_to_row(a) for a in document.authors])
            self._rewrite("editors", [editor_to_row(e) for e in document.editors])
            self._rewrite("magazines", [[m.id, m.name] for m in document.magazines])
            self._rewrite("issues", [issue_to_row(i) for i in issues])
            self._rewrite("works", [work_to_row(w) for i in issues for w in i.works])

        self._guard("replace data", _replace)


# =============================================================================
# AUDIT STORAGE
# =============================================================================

class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        return AuditEvent(
            event_id=UUID(_cell(row, 0)),
            timestamp=datetime.fromisoformat(_cell(row, 1)),
            event_type=AuditEventType(_cell(row, 2)),
            severity=AuditSeverity(_cell(row, 3)),
            entity_type=_cell(row, 4) or None,
            entity_id=_cell(row, 5) or None,
            correlation_id=UUID(_cell(row, 6)) if _cell(row, 6) else None,
            actor=_cell(row, 7) or None,
            description=_cell(row, 8),
            details=json.loads(_cell(row, 9)) if _cell(row, 9) else {},
            error_message=_cell(row, 10) or None,
            is_user_action=_cell(row, 11).lower() == "true",
        )

    @api_retry
    def _all_rows(self) -> list[list]:
        sheet = self._client.get_worksheet("audit")
        return [row for row in sheet.get_all_values()[1:] if row and row[0]]

    def _events(self, predicate: Callable[[list], bool]) -> list[AuditEvent]:
        try:
            rows = self._all_rows()
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in rows:
            if not predicate(row):
                continue
            try:
                events.append(self._row_to_event(row))
            except ValueError:
                continue  # Skip malformed rows
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            self._append(event.to_sheets_row())
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    @api_retry
    def _append(self, row: list) -> None:
        sheet = self._client.get_worksheet("audit")
        sheet.append_row(row, value_input_option="RAW")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = self._events(lambda row: _cell(row, 6) == str(correlation_id))
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = self._events(
            lambda row: _cell(row, 4) == entity_type and _cell(row, 5) == entity_id
        )
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = self._events(lambda row: True)
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
