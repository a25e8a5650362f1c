"""
Fee Reports

DESIGN DECISION: Reports are computed, never stored.
Every figure here is derived from the authoritative fields of the stored
works and the current author rates, so a report always agrees with the
data it was built from.

GUARANTEES:
- Unresolved author references give fee 0 and the name "unknown"
- Works are reported whatever their check status; the status is
  carried on each line so callers can separate confirmed figures
"""

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field

from manuscript_fees.fees.calculator import colour_rate, format_currency, work_fee
from manuscript_fees.models.manuscript import CheckStatus, FeeDocument, Issue, Magazine, Work
from manuscript_fees.reconciliation.detector import UNKNOWN_NAME
from manuscript_fees.services.storage.interface import FeeStorageInterface, NotFoundError


class WorkFeeLine(BaseModel):
    """One work on a fee statement."""

    magazine_name: str
    issue_number: str
    release_date: date
    work_id: str
    title: str
    author_id: Optional[str] = None
    author_name: str = UNKNOWN_NAME
    rate_1c: Optional[int] = Field(default=None, description="None when the author is unknown")
    rate_4c: Optional[int] = Field(default=None, description="None when the author is unknown")
    pages_1c: int
    pages_4c: int
    total_pages: int
    fee: int
    editor_name: str = UNKNOWN_NAME
    check_status: CheckStatus
    author_resolved: bool = True
    editor_resolved: bool = True


class IssueFeeStatement(BaseModel):
    """Fee statement for one issue."""

    magazine_name: str
    issue_id: str
    issue_number: str
    release_date: date
    lines: list[WorkFeeLine] = Field(default_factory=list)

    @property
    def total_fee(self) -> int:
        return sum(line.fee for line in self.lines)

    @property
    def total_pages(self) -> int:
        return sum(line.total_pages for line in self.lines)

    @property
    def confirmed_fee(self) -> int:
        """Fee of confirmed works only, i.e. the amount safe to pay."""
        return sum(line.fee for line in self.lines if line.check_status == CheckStatus.CONFIRMED)

    @property
    def unconfirmed_count(self) -> int:
        return sum(1 for line in self.lines if line.check_status != CheckStatus.CONFIRMED)

    def formatted_total(self, symbol: str = "¥") -> str:
        return format_currency(self.total_fee, symbol)


def build_fee_line(
    document: FeeDocument,
    magazine: Magazine,
    issue: Issue,
    work: Work,
) -> WorkFeeLine:
    """Resolve names and rates for one work."""
    author = document.find_author(work.author_id)
    editor = document.find_editor(work.editor_id)

    return WorkFeeLine(
        magazine_name=magazine.name,
        issue_number=issue.issue_number,
        release_date=issue.release_date,
        work_id=work.id,
        title=work.title,
        author_id=work.author_id,
        author_name=author.name if author else UNKNOWN_NAME,
        rate_1c=author.rate_per_page_1c if author else None,
        rate_4c=colour_rate(author.rate_per_page_1c) if author else None,
        pages_1c=work.pages_1c,
        pages_4c=work.pages_4c,
        total_pages=work.total_pages,
        fee=work_fee(work, author),
        editor_name=editor.name if editor else UNKNOWN_NAME,
        check_status=work.check_status,
        author_resolved=author is not None,
        editor_resolved=editor is not None,
    )


def fee_lines(document: FeeDocument) -> list[WorkFeeLine]:
    """Fee lines for every work, in magazine / issue / work order."""
    return [
        build_fee_line(document, magazine, issue, work)
        for magazine, issue, work in document.iter_works()
    ]


def build_issue_statement(document: FeeDocument, issue_id: str) -> IssueFeeStatement:
    """
    Build the fee statement of one issue.

    Raises:
        NotFoundError: If the issue doesn't exist
    """
    for magazine in document.magazines:
        issue = magazine.find_issue(issue_id)
        if issue is None:
            continue
        return IssueFeeStatement(
            magazine_name=magazine.name,
            issue_id=issue.id,
            issue_number=issue.issue_number,
            release_date=issue.release_date,
            lines=[build_fee_line(document, magazine, issue, work) for work in issue.works],
        )
    raise NotFoundError(f"Issue not found: {issue_id}")


def author_totals(lines: list[WorkFeeLine]) -> dict[str, int]:
    """Total fee per author name. Unknown authors are grouped under 'unknown'."""
    totals: dict[str, int] = {}
    for line in lines:
        totals[line.author_name] = totals.get(line.author_name, 0) + line.fee
    return totals


class FeeReporter:
    """
    Builds fee reports from a store.

    Works on a snapshot of the whole document, so every line of a
    report is computed from one consistent read.
    """

    def __init__(self, storage: FeeStorageInterface):
        self._storage = storage

    async def issue_statement(self, issue_id: str) -> IssueFeeStatement:
        document = await self._storage.load_document()
        return build_issue_statement(document, issue_id)

    async def all_lines(self) -> list[WorkFeeLine]:
        document = await self._storage.load_document()
        return fee_lines(document)

    async def author_totals(self, issue_id: Optional[str] = None) -> dict[str, int]:
        """Fee per author, for one issue or across everything."""
        if issue_id is not None:
            statement = await self.issue_statement(issue_id)
            return author_totals(statement.lines)
        return author_totals(await self.all_lines())
