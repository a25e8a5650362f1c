"""
Entry Capture

Builds Works from independently captured entries.

CRITICAL: The second capturer must not see the first capturer's values.
Nothing in this module hands the first entry back to a caller preparing
a second capture; collaborators must start the second form empty.

Functions here never mutate the Work they are given. They return a new
Work with its version bumped, ready for an optimistic write.
"""

from datetime import datetime
from typing import Optional

from manuscript_fees.models.manuscript import (
    EntrySnapshot,
    FieldDifference,
    ValidationIssue,
    Work,
    utc_now,
)
from manuscript_fees.reconciliation.detector import compare
from manuscript_fees.reconciliation.errors import InvalidStateError, ValidationError
from manuscript_fees.reconciliation.state_machine import CheckEvent, next_status


def _require_capturer(captured_by: Optional[str]) -> str:
    name = (captured_by or "").strip()
    if not name:
        raise ValidationError(
            "Capturer name is required",
            [ValidationIssue(
                field="captured_by",
                issue_type="missing",
                message="The name of the person entering the data is required",
                severity="error",
            )],
        )
    return name


def capture_first(
    issue_id: str,
    entry: EntrySnapshot,
    captured_by: str,
    now: Optional[datetime] = None,
) -> Work:
    """
    Create a new Work from its first entry.

    The authoritative fields start equal to the first entry.

    Raises:
        ValidationError: If the capturer name is blank or no author is referenced
    """
    name = _require_capturer(captured_by)
    if entry.author_id is None:
        raise ValidationError(
            "Author is required for the first entry",
            [ValidationIssue(
                field="authorId",
                issue_type="missing",
                message="An author must be selected",
                severity="error",
            )],
        )

    status = next_status(None, CheckEvent.CAPTURE_FIRST)
    return Work(
        issue_id=issue_id,
        **entry.model_dump(),
        check_status=status,
        first_entry=entry,
        first_entry_by=name,
        first_entry_at=now or utc_now(),
    )


def capture_second(
    work: Work,
    entry: EntrySnapshot,
    captured_by: str,
    now: Optional[datetime] = None,
) -> tuple[Work, list[FieldDifference]]:
    """
    Attach the second entry to a work and compare it with the first.

    Returns:
        (updated_work, differences). The work is in DISCREPANCY when
        differences is non-empty, otherwise in SECOND_CHECK.

    Raises:
        ValidationError: If the capturer name is blank
        InvalidStateError: If the work is not waiting for a second entry
    """
    name = _require_capturer(captured_by)
    if work.first_entry is None:
        raise InvalidStateError(
            "capture the second entry of", work.check_status, "work has no first entry"
        )

    differences = compare(work.first_entry, entry)
    event = CheckEvent.SECOND_DIFFERED if differences else CheckEvent.SECOND_MATCHED
    status = next_status(work.check_status, event)

    updated = work.model_copy(update={
        "check_status": status,
        "second_entry": entry,
        "second_entry_by": name,
        "second_entry_at": now or utc_now(),
        "version": work.version + 1,
    })
    return updated, differences
