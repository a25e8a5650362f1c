"""
Tests for the pure double-entry core: capture, confirm and resolve.
"""

from datetime import datetime, timezone

import pytest

from manuscript_fees.models.manuscript import CheckStatus, EntrySnapshot
from manuscript_fees.reconciliation import (
    InvalidStateError,
    ResolutionChoice,
    ValidationError,
    capture_first,
    capture_second,
    compare,
    confirm,
    direct_create,
    resolve,
)


NOW = datetime(2024, 3, 10, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def first_checked(entry):
    return capture_first("i1", entry, "Alice", now=NOW)


@pytest.fixture
def discrepant(first_checked, entry):
    """A work whose second entry counted 12 mono pages instead of 10."""
    work, _ = capture_second(first_checked, entry.model_copy(update={"pages_1c": 12}), "Bob")
    return work


class TestCaptureFirst:
    """Tests for the first entry."""

    def test_creates_first_check_work(self, entry):
        """A first entry opens the double check."""
        work = capture_first("i1", entry, "Alice", now=NOW)
        assert work.check_status == CheckStatus.FIRST_CHECK
        assert work.issue_id == "i1"
        assert work.first_entry == entry
        assert work.first_entry_by == "Alice"
        assert work.first_entry_at == NOW
        assert work.second_entry is None
        assert work.confirmed_at is None

    def test_authoritative_fields_equal_first_entry(self, entry):
        """The authoritative fields start as the first entry."""
        work = capture_first("i1", entry, "Alice")
        assert work.authoritative_entry().model_dump() == entry.model_dump()

    @pytest.mark.parametrize("captured_by", ["", "   ", None])
    def test_capturer_required(self, entry, captured_by):
        """A blank or missing capturer name is rejected."""
        with pytest.raises(ValidationError) as exc_info:
            capture_first("i1", entry, captured_by)
        assert exc_info.value.issues[0].field == "captured_by"

    def test_author_required(self):
        """A first entry without an author is rejected."""
        with pytest.raises(ValidationError) as exc_info:
            capture_first("i1", EntrySnapshot(title="X", pages_1c=1), "Alice")
        assert exc_info.value.issues[0].field == "authorId"

    def test_capturer_name_is_trimmed(self, entry):
        """Surrounding whitespace is stripped from the capturer name."""
        assert capture_first("i1", entry, "  Alice ").first_entry_by == "Alice"


class TestCaptureSecond:
    """Tests for the second entry."""

    def test_matching_entry(self, first_checked, entry):
        """An identical second entry waits for confirmation."""
        work, differences = capture_second(first_checked, entry, "Bob", now=NOW)
        assert work.check_status == CheckStatus.SECOND_CHECK
        assert differences == []
        assert work.second_entry_by == "Bob"
        assert work.second_entry_at == NOW
        assert work.version == first_checked.version + 1

    def test_differing_entry(self, first_checked, entry):
        """A different page count puts the work in DISCREPANCY."""
        second = entry.model_copy(update={"pages_1c": 12})
        work, differences = capture_second(first_checked, second, "Bob")
        assert work.check_status == CheckStatus.DISCREPANCY
        assert [(d.field, d.first_value, d.second_value) for d in differences] == [
            ("pages1C", 10, 12),
        ]

    def test_authoritative_fields_unchanged(self, first_checked, entry):
        """The second entry never overwrites the authoritative fields."""
        work, _ = capture_second(first_checked, entry.model_copy(update={"pages_1c": 12}), "Bob")
        assert work.pages_1c == 10

    def test_input_work_not_mutated(self, first_checked, entry):
        """The work passed in is left unchanged."""
        capture_second(first_checked, entry, "Bob")
        assert first_checked.check_status == CheckStatus.FIRST_CHECK
        assert first_checked.second_entry is None

    def test_capturer_required(self, first_checked, entry):
        """The second entry also needs a capturer name."""
        with pytest.raises(ValidationError):
            capture_second(first_checked, entry, "")

    def test_rejected_after_second_entry(self, first_checked, entry):
        """A work can take only one second entry."""
        work, _ = capture_second(first_checked, entry, "Bob")
        with pytest.raises(InvalidStateError):
            capture_second(work, entry, "Carol")

    def test_rejected_without_first_entry(self, entry):
        """A directly created work has no first entry to compare."""
        work = direct_create("i1", entry)
        with pytest.raises(InvalidStateError, match="no first entry"):
            capture_second(work, entry, "Bob")

    def test_status_follows_comparison(self, first_checked, entry):
        """DISCREPANCY iff compare is non-empty, SECOND_CHECK iff empty."""
        for second in (entry, entry.model_copy(update={"title": "Y"})):
            work, _ = capture_second(first_checked, second, "Bob")
            has_differences = bool(compare(work.first_entry, work.second_entry))
            assert (work.check_status == CheckStatus.DISCREPANCY) == has_differences
            assert (work.check_status == CheckStatus.SECOND_CHECK) == (not has_differences)


class TestConfirm:
    """Tests for confirming matched entries."""

    def test_confirm(self, first_checked, entry):
        """Matching entries confirm with the entry values."""
        work, _ = capture_second(first_checked, entry, "Bob")
        confirmed = confirm(work, now=NOW)
        assert confirmed.check_status == CheckStatus.CONFIRMED
        assert confirmed.confirmed_at == NOW
        assert confirmed.authoritative_entry().model_dump() == entry.model_dump()

    def test_confirm_rejected_in_first_check(self, first_checked):
        """A work waiting for its second entry can't be confirmed."""
        with pytest.raises(InvalidStateError):
            confirm(first_checked)

    def test_confirm_rejected_on_discrepancy(self, discrepant):
        """A discrepancy must be resolved, not confirmed."""
        with pytest.raises(InvalidStateError):
            confirm(discrepant)


class TestResolve:
    """Tests for resolving discrepancies."""

    def test_resolve_with_second(self, discrepant):
        """Choosing the second entry copies its values."""
        work = resolve(discrepant, ResolutionChoice.SECOND, now=NOW)
        assert work.check_status == CheckStatus.CONFIRMED
        assert work.pages_1c == 12
        assert work.confirmed_at == NOW

    def test_resolve_with_first(self, discrepant):
        """Choosing the first entry keeps its values."""
        work = resolve(discrepant, ResolutionChoice.FIRST)
        assert work.pages_1c == 10
        assert work.is_confirmed

    def test_resolve_copies_absent_page_numbers(self, entry):
        """Every field is copied, including an absent start page."""
        first = entry.model_copy(update={"start_page": 3, "end_page": 12})
        work = capture_first("i1", first, "Alice")
        work, _ = capture_second(work, entry, "Bob")
        resolved = resolve(work, ResolutionChoice.SECOND)
        assert resolved.start_page is None
        assert resolved.end_page is None

    def test_resolve_with_corrected_entry(self, discrepant, entry):
        """A corrected entry wins and both captured entries stay."""
        corrected = entry.model_copy(update={"pages_1c": 11})
        work = resolve(discrepant, corrected)
        assert work.pages_1c == 11
        assert work.first_entry.pages_1c == 10
        assert work.second_entry.pages_1c == 12

    def test_resolve_rejected_without_discrepancy(self, first_checked):
        """Only a discrepancy can be resolved."""
        with pytest.raises(InvalidStateError):
            resolve(first_checked, ResolutionChoice.FIRST)


class TestTerminality:
    """Tests that confirmed works never change."""

    def test_confirmed_work_is_frozen(self, discrepant, entry):
        """Every operation on a confirmed work fails and changes nothing."""
        work = resolve(discrepant, ResolutionChoice.SECOND)
        snapshot = work.model_dump()

        for operation in (
            lambda: capture_second(work, entry, "Carol"),
            lambda: confirm(work),
            lambda: resolve(work, ResolutionChoice.FIRST),
            lambda: resolve(work, entry),
        ):
            with pytest.raises(InvalidStateError):
                operation()

        assert work.model_dump() == snapshot


class TestDirectCreate:
    """Tests for administrative entry."""

    def test_direct_create(self, entry):
        """Administrative entry goes straight to CONFIRMED."""
        work = direct_create("i1", entry, now=NOW)
        assert work.check_status == CheckStatus.CONFIRMED
        assert work.first_entry is None
        assert work.second_entry is None
        assert work.confirmed_at == NOW
        assert work.pages_1c == 10
