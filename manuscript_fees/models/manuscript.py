"""
Core Data Models for Manuscript Fees

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage, export and logging
4. Support the audit trail

DESIGN DECISION: Python attributes are snake_case, but every model is
dumped and loaded with the camelCase keys of the exchange document
(`pages1C`, `firstEntryBy`, ...). Always serialize with `by_alias=True`
and `exclude_none=True` so that an absent optional page number stays
absent instead of turning into `null`.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Iterator, Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


def new_id() -> str:
    """Generate a new entity identifier."""
    return uuid4().hex


def utc_now() -> datetime:
    """Current time in UTC (timezone aware)."""
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class CheckStatus(str, Enum):
    """
    Reconciliation status of a work.

    CRITICAL: A work only reaches CONFIRMED through an explicit confirm or
    resolve by a human, or through direct administrative entry.
    CONFIRMED is terminal.
    """
    DRAFT = "draft"                    # Direct-entry path only, immediately superseded
    FIRST_CHECK = "first_check"        # First entry captured, waiting for second
    SECOND_CHECK = "second_check"      # Both entries captured and identical
    DISCREPANCY = "discrepancy"        # Both entries captured, they differ
    CONFIRMED = "confirmed"            # Final and fee-bearing


# =============================================================================
# MASTER DATA
# =============================================================================

class Author(BaseModel):
    """
    A contributing author.

    Only the monochrome (1C) rate is stored. The colour (4C) rate is
    always derived from it, see `manuscript_fees.fees.colour_rate`.
    """
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    id: str = Field(default_factory=new_id)
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Display name"
    )
    rate_per_page_1c: int = Field(
        default=0,
        ge=0,
        alias="ratePerPage1C",
        description="Base rate per monochrome page, in whole currency units"
    )


class Editor(BaseModel):
    """An editor responsible for works."""
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    id: str = Field(default_factory=new_id)
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Display name"
    )


# =============================================================================
# WORKS AND ENTRY SNAPSHOTS
# =============================================================================

class WorkFields(BaseModel):
    """
    The editorial facts of a work.

    Shared by the authoritative record on `Work` and by the independently
    captured `EntrySnapshot`s.
    """
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    title: str = Field(
        default="",
        max_length=300,
        description="Work title"
    )
    author_id: Optional[str] = Field(
        default=None,
        alias="authorId",
        description="Reference to an Author (not enforced)"
    )
    editor_id: Optional[str] = Field(
        default=None,
        alias="editorId",
        description="Reference to an Editor (not enforced)"
    )
    pages_1c: int = Field(
        default=0,
        ge=0,
        alias="pages1C",
        description="Number of monochrome pages"
    )
    pages_4c: int = Field(
        default=0,
        ge=0,
        alias="pages4C",
        description="Number of colour pages"
    )
    start_page: Optional[int] = Field(
        default=None,
        ge=1,
        alias="startPage",
        description="First page in the issue (table of contents cross-check)"
    )
    end_page: Optional[int] = Field(
        default=None,
        ge=1,
        alias="endPage",
        description="Last page in the issue (table of contents cross-check)"
    )

    @field_validator('author_id', 'editor_id', mode='before')
    @classmethod
    def blank_reference_is_absent(cls, v: Any) -> Any:
        """An unselected reference arrives as an empty string."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def total_pages(self) -> int:
        return self.pages_1c + self.pages_4c


class EntrySnapshot(WorkFields):
    """
    One capturer's independent description of a work.

    Immutable once written. Never addressed on its own: it only exists
    as the first or second entry of a `Work`.
    """
    model_config = ConfigDict(frozen=True)


class Work(WorkFields):
    """
    A work published in an issue.

    The authoritative fields (inherited from WorkFields) are what fees
    and displays use, whatever the check status. The entry snapshots
    and their capturers are only present for works that went through
    the double-entry check.
    """

    id: str = Field(default_factory=new_id)
    issue_id: Optional[str] = Field(
        default=None,
        alias="issueId",
        description="Owning issue"
    )

    check_status: CheckStatus = Field(
        default=CheckStatus.CONFIRMED,
        alias="checkStatus",
        description="Reconciliation status"
    )

    first_entry: Optional[EntrySnapshot] = Field(default=None, alias="firstEntry")
    first_entry_by: Optional[str] = Field(default=None, alias="firstEntryBy")
    first_entry_at: Optional[datetime] = Field(default=None, alias="firstEntryAt")

    second_entry: Optional[EntrySnapshot] = Field(default=None, alias="secondEntry")
    second_entry_by: Optional[str] = Field(default=None, alias="secondEntryBy")
    second_entry_at: Optional[datetime] = Field(default=None, alias="secondEntryAt")

    confirmed_at: Optional[datetime] = Field(default=None, alias="confirmedAt")

    # Optimistic locking: bumped on every write
    version: int = Field(default=1, ge=1)

    @property
    def has_both_entries(self) -> bool:
        return self.first_entry is not None and self.second_entry is not None

    @property
    def is_confirmed(self) -> bool:
        return self.check_status == CheckStatus.CONFIRMED

    def authoritative_entry(self) -> EntrySnapshot:
        """The current authoritative fields as a snapshot-shaped value."""
        return EntrySnapshot(**self.model_dump(include=set(WorkFields.model_fields)))


# =============================================================================
# CATALOG
# =============================================================================

class Issue(BaseModel):
    """
    One issue of a magazine.

    Works are kept in creation order. Deleting an issue deletes its works.
    """
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    id: str = Field(default_factory=new_id)
    magazine_id: Optional[str] = Field(default=None, alias="magazineId")
    issue_number: str = Field(
        ...,
        min_length=1,
        max_length=100,
        alias="issueNumber",
        description="Human-readable issue label (e.g. 'March 2024')"
    )
    release_date: date = Field(
        ...,
        alias="releaseDate",
        description="Release date of the issue"
    )
    works: list[Work] = Field(default_factory=list)

    def find_work(self, work_id: str) -> Optional[Work]:
        for work in self.works:
            if work.id == work_id:
                return work
        return None


class Magazine(BaseModel):
    """A magazine and its issues (creation order, not necessarily chronological)."""
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    id: str = Field(default_factory=new_id)
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Magazine name"
    )
    issues: list[Issue] = Field(default_factory=list)

    def find_issue(self, issue_id: str) -> Optional[Issue]:
        for issue in self.issues:
            if issue.id == issue_id:
                return issue
        return None


class FeeDocument(BaseModel):
    """
    The whole entity graph.

    This is the shape of the JSON export and of the local data file:
    top-level keys `magazines`, `authors` and `editors`.
    """
    model_config = ConfigDict(populate_by_name=True)

    magazines: list[Magazine]
    authors: list[Author]
    editors: list[Editor]

    @model_validator(mode='after')
    def link_back_references(self) -> 'FeeDocument':
        """Fill owner references that older exports do not carry."""
        for magazine in self.magazines:
            for issue in magazine.issues:
                issue.magazine_id = magazine.id
                for work in issue.works:
                    work.issue_id = issue.id
        return self

    @classmethod
    def empty(cls) -> 'FeeDocument':
        return cls(magazines=[], authors=[], editors=[])

    def find_author(self, author_id: Optional[str]) -> Optional[Author]:
        if author_id is None:
            return None
        return next((a for a in self.authors if a.id == author_id), None)

    def find_editor(self, editor_id: Optional[str]) -> Optional[Editor]:
        if editor_id is None:
            return None
        return next((e for e in self.editors if e.id == editor_id), None)

    def find_magazine(self, magazine_id: str) -> Optional[Magazine]:
        return next((m for m in self.magazines if m.id == magazine_id), None)

    def find_issue(self, issue_id: str) -> Optional[Issue]:
        for magazine in self.magazines:
            issue = magazine.find_issue(issue_id)
            if issue is not None:
                return issue
        return None

    def iter_works(self) -> Iterator[tuple[Magazine, Issue, Work]]:
        for magazine in self.magazines:
            for issue in magazine.issues:
                for work in issue.works:
                    yield magazine, issue, work

    def to_json_dict(self) -> dict:
        """Dump using exchange-document keys."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# RECONCILIATION RESULTS
# =============================================================================

class FieldDifference(BaseModel):
    """One mismatching field between the first and second entry."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    field: str = Field(
        ...,
        description="Exchange-document name of the field (e.g. 'pages1C')"
    )
    first_value: Any = Field(default=None, alias="first")
    second_value: Any = Field(default=None, alias="second")


class PendingWork(BaseModel):
    """
    A work waiting for its second entry.

    Deliberately carries no entry values: the second capturer picks
    the work by its title and must not see what was entered first.
    """

    work_id: str
    title: str
    first_entry_by: Optional[str] = None
    first_entry_at: Optional[datetime] = None


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'unresolved_reference', 'inconsistent')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage entry validation.

    Stage 1: Schema validation (required fields)
    Stage 2: Semantic validation (references, page range consistency)
    """

    validated_at: datetime = Field(
        default_factory=utc_now
    )

    schema_valid: bool = Field(
        ...,
        description="Did schema validation pass?"
    )
    semantic_valid: bool = Field(
        ...,
        description="Did semantic validation pass?"
    )
    is_valid: bool = Field(
        ...,
        description="Overall validation result"
    )

    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )

    # Warnings don't block but should be shown
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "error"]
