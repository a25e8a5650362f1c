"""
Tests for the storage implementations.

The same behaviour is checked against the in-memory store and the
Google Sheets store running on a fake worksheet client.
"""

from datetime import date

import pytest

from manuscript_fees.models.audit import AuditEventBuilder
from manuscript_fees.models.manuscript import (
    Author,
    CheckStatus,
    EntrySnapshot,
    FeeDocument,
    Issue,
    Magazine,
    Work,
)
from manuscript_fees.reconciliation import ConcurrentUpdateError, capture_first
from manuscript_fees.services.storage import (
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsFeeStorage,
    InMemoryFeeStorage,
    JsonFileFeeStorage,
    NotFoundError,
    StorageError,
    WorkNotFoundError,
)
from manuscript_fees.services.storage.google_sheets import row_to_work, work_to_row

from conftest import AUTHOR_ID, ISSUE_ID, MAGAZINE_ID, run


@pytest.fixture(params=["memory", "sheets"])
def store(request, document, sheets_client):
    """A fee store holding the shared test document."""
    if request.param == "memory":
        return InMemoryFeeStorage(document)
    sheets = GoogleSheetsFeeStorage(sheets_client)
    run(sheets.replace_document(document))
    return sheets


def new_work(entry, title="X") -> Work:
    return capture_first(ISSUE_ID, entry.model_copy(update={"title": title}), "Alice")


class TestWorks:
    """Tests for work persistence."""

    def test_create_and_find(self, store, entry):
        """A created work reads back unchanged."""
        work = run(store.create_work(ISSUE_ID, new_work(entry)))
        found = run(store.find_work(ISSUE_ID, work.id))
        assert found.model_dump() == work.model_dump()
        assert found.first_entry == entry

    def test_create_in_unknown_issue(self, store, entry):
        """Creating in an unknown issue raises NotFoundError."""
        with pytest.raises(NotFoundError):
            run(store.create_work("missing", new_work(entry)))

    def test_duplicate_work(self, store, entry):
        """A work id can be created only once."""
        work = run(store.create_work(ISSUE_ID, new_work(entry)))
        with pytest.raises(DuplicateError):
            run(store.create_work(ISSUE_ID, work))

    def test_works_keep_creation_order(self, store, entry):
        """Works are listed in creation order."""
        for title in ("A", "B", "C"):
            run(store.create_work(ISSUE_ID, new_work(entry, title)))
        assert [w.title for w in run(store.list_works(ISSUE_ID))] == ["A", "B", "C"]

    def test_update_with_version_check(self, store, entry):
        """An update with a stale version is rejected."""
        work = run(store.create_work(ISSUE_ID, new_work(entry)))
        updated = work.model_copy(update={"title": "New", "version": 2})
        run(store.update_work(updated, expected_version=1))
        assert run(store.find_work(ISSUE_ID, work.id)).title == "New"

        stale = work.model_copy(update={"title": "Stale", "version": 2})
        with pytest.raises(ConcurrentUpdateError):
            run(store.update_work(stale, expected_version=1))
        assert run(store.find_work(ISSUE_ID, work.id)).title == "New"

    def test_update_missing_work(self, store, entry):
        """Updating an unknown work raises WorkNotFoundError."""
        with pytest.raises(WorkNotFoundError):
            run(store.update_work(new_work(entry), expected_version=1))

    def test_list_by_status(self, store, entry):
        """Works can be listed by check status."""
        pending = run(store.create_work(ISSUE_ID, new_work(entry)))
        run(store.create_work(ISSUE_ID, Work(title="Direct", issue_id=ISSUE_ID)))
        listed = run(store.list_works_by_status(ISSUE_ID, CheckStatus.FIRST_CHECK))
        assert [w.id for w in listed] == [pending.id]

    def test_delete_work(self, store, entry):
        """Deleting a work twice reports False the second time."""
        work = run(store.create_work(ISSUE_ID, new_work(entry)))
        assert run(store.delete_work(ISSUE_ID, work.id)) is True
        assert run(store.delete_work(ISSUE_ID, work.id)) is False
        assert run(store.find_work(ISSUE_ID, work.id)) is None


class TestCatalog:
    """Tests for authors, magazines and issues."""

    def test_save_and_update_author(self, store):
        """An author is stored with its rate."""
        run(store.save_author(Author(id=AUTHOR_ID, name="Sato", rate_per_page_1c=12000)))
        authors = run(store.list_authors())
        assert len(authors) == 1
        assert run(store.find_author(AUTHOR_ID)).rate_per_page_1c == 12000

    def test_deleting_author_keeps_works(self, store, entry):
        """Deleting an author leaves its works."""
        work = run(store.create_work(ISSUE_ID, new_work(entry)))
        assert run(store.delete_author(AUTHOR_ID)) is True
        assert run(store.find_author(AUTHOR_ID)) is None
        assert run(store.find_work(ISSUE_ID, work.id)).author_id == AUTHOR_ID

    def test_deleting_issue_cascades(self, store, entry):
        """Deleting an issue removes its works."""
        run(store.create_work(ISSUE_ID, new_work(entry)))
        assert run(store.delete_issue(ISSUE_ID)) is True
        assert run(store.find_issue(ISSUE_ID)) is None
        document = run(store.load_document())
        assert list(document.iter_works()) == []

    def test_deleting_magazine_cascades(self, store, entry):
        """Deleting a magazine removes its issues and works."""
        run(store.create_work(ISSUE_ID, new_work(entry)))
        assert run(store.delete_magazine(MAGAZINE_ID)) is True
        assert run(store.list_magazines()) == []
        assert run(store.find_issue(ISSUE_ID)) is None
        assert run(store.find_work(ISSUE_ID, "anything")) is None

    def test_save_issue(self, store):
        """A new issue is appended to its magazine."""
        issue = run(store.save_issue(
            MAGAZINE_ID, Issue(id="i2", issue_number="April 2024", release_date=date(2024, 4, 1))
        ))
        assert issue.magazine_id == MAGAZINE_ID
        magazine = run(store.find_magazine(MAGAZINE_ID))
        assert [i.id for i in magazine.issues] == [ISSUE_ID, "i2"]

    def test_save_issue_unknown_magazine(self, store):
        """An issue needs an existing magazine."""
        with pytest.raises(NotFoundError):
            run(store.save_issue(
                "missing", Issue(issue_number="April 2024", release_date=date(2024, 4, 1))
            ))

    def test_rename_magazine_keeps_issues(self, store):
        """Renaming a magazine keeps its issues."""
        run(store.save_magazine(Magazine(id=MAGAZINE_ID, name="Weekly Comic")))
        magazine = run(store.find_magazine(MAGAZINE_ID))
        assert magazine.name == "Weekly Comic"
        assert [i.id for i in magazine.issues] == [ISSUE_ID]

    def test_replace_document(self, store):
        """Replacing the document drops the old contents."""
        run(store.replace_document(FeeDocument.empty()))
        assert run(store.list_magazines()) == []
        assert run(store.list_authors()) == []


class TestInMemoryIsolation:
    """Tests that callers can't mutate stored state."""

    def test_returned_work_is_a_copy(self, storage, entry):
        """Changing a returned work doesn't change the store."""
        work = run(storage.create_work(ISSUE_ID, new_work(entry)))
        work.title = "Mutated"
        assert run(storage.find_work(ISSUE_ID, work.id)).title == "X"


class TestJsonFileStorage:
    """Tests for the local JSON data file."""

    def test_persists_across_instances(self, tmp_path, document, entry):
        """Works written by one store are read by the next."""
        path = tmp_path / "data.json"
        first = JsonFileFeeStorage(path)
        run(first.replace_document(document))
        work = run(first.create_work(ISSUE_ID, new_work(entry)))

        reopened = JsonFileFeeStorage(path)
        found = run(reopened.find_work(ISSUE_ID, work.id))
        assert found.check_status == CheckStatus.FIRST_CHECK
        assert found.first_entry == entry
        assert "startPage" not in path.read_text(encoding="utf-8")

    def test_missing_file_is_empty(self, tmp_path):
        """A missing data file reads as an empty document."""
        store = JsonFileFeeStorage(tmp_path / "absent.json")
        assert run(store.list_magazines()) == []

    def test_corrupt_file(self, tmp_path):
        """An unreadable data file is a StorageError."""
        path = tmp_path / "data.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(StorageError):
            JsonFileFeeStorage(path)

    def test_failed_write_changes_nothing(self, tmp_path, monkeypatch, document, entry):
        """A write that fails leaves the store and the directory as they were."""
        store = JsonFileFeeStorage(tmp_path / "data.json")
        run(store.replace_document(document))

        def refuse(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr("manuscript_fees.services.storage.memory.os.replace", refuse)
        with pytest.raises(StorageError, match="disk full"):
            run(store.create_work(ISSUE_ID, new_work(entry)))

        assert run(store.list_works(ISSUE_ID)) == []
        assert list(tmp_path.glob("*.tmp")) == []

    def test_unwritable_directory(self, tmp_path):
        """A data file under a plain file can't be written, and nothing is kept."""
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        store = JsonFileFeeStorage(blocker / "data.json")
        with pytest.raises(StorageError):
            run(store.save_author(Author(id=AUTHOR_ID, name="Sato", rate_per_page_1c=10000)))
        assert run(store.list_authors()) == []

    def test_two_stores_share_one_file(self, tmp_path, document, entry):
        """Each store sees the other's writes instead of overwriting them."""
        path = tmp_path / "data.json"
        mine = JsonFileFeeStorage(path)
        run(mine.replace_document(document))
        other = JsonFileFeeStorage(path)

        run(mine.create_work(ISSUE_ID, new_work(entry, title="Mine")))
        run(other.create_work(ISSUE_ID, new_work(entry, title="Other")))

        titles = [w.title for w in run(JsonFileFeeStorage(path).list_works(ISSUE_ID))]
        assert titles == ["Mine", "Other"]

    def test_version_check_reads_the_file(self, tmp_path, document, entry):
        """A stale update through a second store is rejected."""
        path = tmp_path / "data.json"
        mine = JsonFileFeeStorage(path)
        run(mine.replace_document(document))
        other = JsonFileFeeStorage(path)

        work = run(mine.create_work(ISSUE_ID, new_work(entry)))
        stale = run(other.find_work(ISSUE_ID, work.id))
        run(mine.update_work(work.model_copy(update={"version": 2, "title": "Y"}), expected_version=1))

        with pytest.raises(ConcurrentUpdateError) as exc_info:
            run(other.update_work(stale.model_copy(update={"version": 2}), expected_version=1))
        assert exc_info.value.actual_version == 2
        assert run(JsonFileFeeStorage(path).find_work(ISSUE_ID, work.id)).title == "Y"



class TestGoogleSheetsRows:
    """Tests for row conversion."""

    def test_work_row_round_trip(self, entry):
        """A work survives conversion to a row and back."""
        work = new_work(entry.model_copy(update={"start_page": 5, "end_page": 14}))
        row = [str(cell) for cell in work_to_row(work)]
        assert len(row) == 18
        restored = row_to_work(row)
        assert restored.model_dump() == work.model_dump()

    def test_short_rows_are_tolerated(self):
        """Short rows fill missing cells with defaults."""
        work = row_to_work(["w1", ISSUE_ID, "Title"])
        assert work.pages_1c == 0
        assert work.start_page is None
        assert work.check_status == CheckStatus.CONFIRMED
        assert work.version == 1

    def test_backend_errors_are_wrapped(self):
        """Client failures surface as StorageError."""
        class BrokenClient:
            def get_worksheet(self, kind):
                raise RuntimeError("quota exceeded")

        store = GoogleSheetsFeeStorage(BrokenClient())
        with pytest.raises(StorageError, match="quota exceeded"):
            run(store.list_authors())


class TestGoogleSheetsAudit:
    """Tests for the audit worksheet."""

    def test_append_and_query(self, sheets_client):
        """Audit events can be appended and queried."""
        audit = GoogleSheetsAuditStorage(sheets_client)
        event = AuditEventBuilder.discrepancy_detected(
            work_id="w1",
            differences=[{"field": "pages1C", "first": 10, "second": 12}],
        )
        assert run(audit.append_event(event)) is True
        assert run(audit.append_event(AuditEventBuilder.work_confirmed("w2", "Carol"))) is True

        events = run(audit.get_events_by_entity("work", "w1"))
        assert len(events) == 1
        assert events[0].event_id == event.event_id
        assert events[0].details["differences"][0]["second"] == 12
        assert len(run(audit.get_recent_events(limit=1))) == 1
