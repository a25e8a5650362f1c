"""
Shared fixtures.

Test strategy:
1. Unit tests for the pure core (fees, detector, state machine, capture)
2. Service tests against the in-memory store
3. No real API calls (Google Sheets is replaced by an in-process fake)

Async code is driven with asyncio.run through the `run` helper.
"""

import asyncio
from datetime import date

import pytest

from manuscript_fees.audit import AuditLogger
from manuscript_fees.models.manuscript import (
    Author,
    Editor,
    EntrySnapshot,
    FeeDocument,
    Issue,
    Magazine,
)
from manuscript_fees.services.storage import InMemoryAuditStorage, InMemoryFeeStorage
from manuscript_fees.services.storage.google_sheets import SHEET_COLUMNS


def run(coro):
    """Run a coroutine to completion."""
    return asyncio.run(coro)


# =============================================================================
# GOOGLE SHEETS FAKE
# =============================================================================

class FakeWorksheet:
    """Keeps rows as lists of strings, the way gspread returns them."""

    def __init__(self, header: list[str]):
        self.rows = [list(header)]

    @staticmethod
    def _cells(row: list) -> list[str]:
        return ["" if value is None else str(value) for value in row]

    def get_all_values(self) -> list[list[str]]:
        return [list(row) for row in self.rows]

    def append_row(self, row, value_input_option=None):
        self.rows.append(self._cells(row))

    def append_rows(self, rows, value_input_option=None):
        for row in rows:
            self.rows.append(self._cells(row))

    def update(self, range_name=None, values=None, raw=True):
        index = int(range_name.lstrip("A")) - 1
        self.rows[index] = self._cells(values[0])

    def delete_rows(self, index):
        del self.rows[index - 1]

    def clear(self):
        self.rows = []


class FakeSheetsClient:
    """Stands in for GoogleSheetsClient: one fake worksheet per kind."""

    def __init__(self):
        self.sheets: dict[str, FakeWorksheet] = {}

    def get_worksheet(self, kind: str) -> FakeWorksheet:
        if kind not in self.sheets:
            self.sheets[kind] = FakeWorksheet(SHEET_COLUMNS[kind])
        return self.sheets[kind]


# =============================================================================
# DATA FIXTURES
# =============================================================================

AUTHOR_ID = "a1"
EDITOR_ID = "e1"
MAGAZINE_ID = "m1"
ISSUE_ID = "i1"


@pytest.fixture
def document() -> FeeDocument:
    """One magazine with one empty issue, one author and one editor."""
    return FeeDocument(
        magazines=[
            Magazine(
                id=MAGAZINE_ID,
                name="Monthly Comic",
                issues=[
                    Issue(
                        id=ISSUE_ID,
                        issue_number="March 2024",
                        release_date=date(2024, 3, 1),
                    ),
                ],
            ),
        ],
        authors=[Author(id=AUTHOR_ID, name="Sato", rate_per_page_1c=10000)],
        editors=[Editor(id=EDITOR_ID, name="Tanaka")],
    )


@pytest.fixture
def storage(document) -> InMemoryFeeStorage:
    return InMemoryFeeStorage(document)


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def entry() -> EntrySnapshot:
    """Ten mono pages by Sato, edited by Tanaka."""
    return EntrySnapshot(
        title="X",
        author_id=AUTHOR_ID,
        editor_id=EDITOR_ID,
        pages_1c=10,
        pages_4c=0,
    )


@pytest.fixture
def sheets_client() -> FakeSheetsClient:
    return FakeSheetsClient()
