"""
Tests for the data models and audit events.
"""

from datetime import date
from uuid import uuid4

import pytest
from pydantic import ValidationError as PydanticValidationError

from manuscript_fees.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from manuscript_fees.models.manuscript import (
    Author,
    CheckStatus,
    Editor,
    EntrySnapshot,
    FeeDocument,
    Issue,
    Magazine,
    ValidationIssue,
    ValidationResult,
    Work,
)


class TestMasterData:
    """Tests for authors and editors."""

    def test_author_strips_whitespace(self):
        """Test that whitespace is stripped from names."""
        author = Author(name="  Sato  ", rate_per_page_1c=10000)
        assert author.name == "Sato"

    def test_author_rejects_negative_rate(self):
        """Test that a negative base rate is rejected."""
        with pytest.raises(PydanticValidationError):
            Author(name="Sato", rate_per_page_1c=-1)

    def test_author_loads_exchange_keys(self):
        """Test that camelCase document keys are accepted."""
        author = Author.model_validate({"id": "a1", "name": "Sato", "ratePerPage1C": 8000})
        assert author.rate_per_page_1c == 8000
        assert author.model_dump(by_alias=True)["ratePerPage1C"] == 8000

    def test_editor_requires_name(self):
        """Test that an empty editor name is rejected."""
        with pytest.raises(PydanticValidationError):
            Editor(name="")

    def test_ids_are_generated(self):
        """Test that every entity gets a distinct id."""
        assert Editor(name="A").id != Editor(name="B").id


class TestEntrySnapshot:
    """Tests for entry snapshots."""

    def test_snapshot_is_frozen(self):
        """Test that a written snapshot cannot be changed."""
        snapshot = EntrySnapshot(title="X", author_id="a1", pages_1c=10)
        with pytest.raises(PydanticValidationError):
            snapshot.pages_1c = 12

    def test_blank_references_become_none(self):
        """Test that an unselected author/editor arrives as None."""
        snapshot = EntrySnapshot.model_validate({"title": "X", "authorId": "", "editorId": " "})
        assert snapshot.author_id is None
        assert snapshot.editor_id is None

    def test_total_pages(self):
        """Test that total pages add mono and colour pages."""
        snapshot = EntrySnapshot(title="X", pages_1c=5, pages_4c=3)
        assert snapshot.total_pages == 8

    def test_page_numbers_start_at_one(self):
        """Test that page numbers start at one."""
        with pytest.raises(PydanticValidationError):
            EntrySnapshot(title="X", start_page=0)

    def test_absent_page_number_not_dumped(self):
        """Test that an absent start page stays out of the dump."""
        dumped = EntrySnapshot(title="X", end_page=12).model_dump(by_alias=True, exclude_none=True)
        assert "startPage" not in dumped
        assert dumped["endPage"] == 12


class TestWork:
    """Tests for the Work model."""

    def test_default_status_is_confirmed(self):
        """Works imported without a status are treated as confirmed."""
        work = Work.model_validate({"id": "w1", "title": "X", "pages1C": 4})
        assert work.check_status == CheckStatus.CONFIRMED
        assert work.version == 1

    def test_has_both_entries(self):
        """Test that both entries must be present."""
        snapshot = EntrySnapshot(title="X")
        work = Work(title="X", first_entry=snapshot)
        assert not work.has_both_entries
        work = Work(title="X", first_entry=snapshot, second_entry=snapshot)
        assert work.has_both_entries

    def test_authoritative_entry(self):
        """Test that the authoritative fields can be viewed as a snapshot."""
        work = Work(title="X", author_id="a1", pages_1c=10, start_page=3, end_page=12)
        entry = work.authoritative_entry()
        assert isinstance(entry, EntrySnapshot)
        assert entry.model_dump() == EntrySnapshot(
            title="X", author_id="a1", pages_1c=10, start_page=3, end_page=12
        ).model_dump()


class TestFeeDocument:
    """Tests for the whole entity graph."""

    def test_back_references_are_filled(self):
        """Test that magazine and issue ids are linked on load."""
        document = FeeDocument.model_validate({
            "magazines": [{
                "id": "m1",
                "name": "Monthly Comic",
                "issues": [{
                    "id": "i1",
                    "issueNumber": "March 2024",
                    "releaseDate": "2024-03-01",
                    "works": [{"id": "w1", "title": "X"}],
                }],
            }],
            "authors": [],
            "editors": [],
        })
        issue = document.find_issue("i1")
        assert issue.magazine_id == "m1"
        assert issue.works[0].issue_id == "i1"

    def test_find_helpers_tolerate_missing(self, document):
        """Test that lookups of missing ids return None."""
        assert document.find_author(None) is None
        assert document.find_author("missing") is None
        assert document.find_editor("e1").name == "Tanaka"
        assert document.find_issue("missing") is None

    def test_iter_works(self, document):
        """Test that works are iterated in issue order."""
        issue = document.find_issue("i1")
        issue.works.append(Work(title="A"))
        issue.works.append(Work(title="B"))
        titles = [work.title for _, _, work in document.iter_works()]
        assert titles == ["A", "B"]

    def test_issue_requires_label(self):
        """Test that an issue needs a number."""
        with pytest.raises(PydanticValidationError):
            Issue(issue_number="", release_date=date(2024, 3, 1))

    def test_empty_document(self):
        """Test that an empty document dumps three empty lists."""
        document = FeeDocument.empty()
        assert document.to_json_dict() == {"magazines": [], "authors": [], "editors": []}

    def test_magazine_find_issue(self):
        """Test that a magazine finds its own issues."""
        magazine = Magazine(name="Weekly", issues=[
            Issue(id="i9", issue_number="No. 9", release_date=date(2024, 1, 1)),
        ])
        assert magazine.find_issue("i9").issue_number == "No. 9"
        assert magazine.find_issue("i1") is None


class TestValidationModels:
    """Tests for validation-related models."""

    def test_validation_issue_severity(self):
        """Test that unknown severities are rejected."""
        with pytest.raises(PydanticValidationError):
            ValidationIssue(field="x", issue_type="missing", message="m", severity="fatal")

    def test_validation_result_errors(self):
        """Test that errors are counted and listed."""
        result = ValidationResult(
            schema_valid=False,
            semantic_valid=False,
            is_valid=False,
            issues=[
                ValidationIssue(field="title", issue_type="missing", message="m", severity="error"),
                ValidationIssue(field="editorId", issue_type="missing", message="m", severity="warning"),
            ],
        )
        assert result.has_errors
        assert result.error_count == 1
        assert result.errors[0].field == "title"


class TestAuditModels:
    """Tests for audit event models."""

    def test_audit_event_creation(self):
        """Test that a new event gets an id and INFO severity."""
        event = AuditEvent(
            event_type=AuditEventType.WORK_CONFIRMED,
            description="Work confirmed",
        )
        assert event.event_id is not None
        assert event.severity == AuditSeverity.INFO

    def test_to_sheets_row(self):
        """Test conversion to a spreadsheet row."""
        correlation_id = uuid4()
        event = AuditEventBuilder.first_entry_captured(
            work_id="w1",
            issue_id="i1",
            captured_by="Alice",
            correlation_id=correlation_id,
        )
        row = event.to_sheets_row()
        assert len(row) == 12
        assert row[2] == "first_entry_captured"
        assert row[5] == "w1"
        assert row[6] == str(correlation_id)
        assert row[7] == "Alice"

    def test_discrepancy_event_is_warning(self):
        """Test that a discrepancy is logged as a warning."""
        event = AuditEventBuilder.discrepancy_detected(
            work_id="w1",
            differences=[{"field": "pages1C", "first": 10, "second": 12}],
        )
        assert event.event_type == AuditEventType.DISCREPANCY_DETECTED
        assert event.severity == AuditSeverity.WARNING
        assert event.details["fields"] == ["pages1C"]

    def test_catalog_event_types(self):
        """Test that catalog changes map to saved and deleted events."""
        saved = AuditEventBuilder.catalog_changed("author", "a1", "Sato")
        deleted = AuditEventBuilder.catalog_changed("issue", "i1", "March 2024", deleted=True)
        assert saved.event_type == AuditEventType.AUTHOR_SAVED
        assert deleted.event_type == AuditEventType.ISSUE_DELETED
