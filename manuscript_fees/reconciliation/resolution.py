"""
Resolution Applier

Turns a checked work into a confirmed, fee-bearing record.

- confirm: both entries matched; authoritative fields are already right
- resolve: entries differed; a human picks the first entry, the second
  entry, or supplies a corrected entry, which becomes authoritative
- direct_create: administrative entry that skips the double check
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Union

from manuscript_fees.models.manuscript import EntrySnapshot, Work, utc_now
from manuscript_fees.reconciliation.errors import InvalidStateError
from manuscript_fees.reconciliation.state_machine import CheckEvent, next_status


class ResolutionChoice(str, Enum):
    """Which captured entry wins a discrepancy."""
    FIRST = "first"
    SECOND = "second"


Resolution = Union[ResolutionChoice, EntrySnapshot]


def describe_resolution(choice: Resolution) -> str:
    """Short label for audit trails: 'first', 'second' or 'manual'."""
    if isinstance(choice, ResolutionChoice):
        return choice.value
    return "manual"


def confirm(work: Work, now: Optional[datetime] = None) -> Work:
    """
    Confirm a work whose two entries matched.

    Raises:
        InvalidStateError: If the work is not in SECOND_CHECK
    """
    status = next_status(work.check_status, CheckEvent.CONFIRM)
    return work.model_copy(update={
        "check_status": status,
        "confirmed_at": now or utc_now(),
        "version": work.version + 1,
    })


def resolve(work: Work, choice: Resolution, now: Optional[datetime] = None) -> Work:
    """
    Resolve a discrepancy by making one entry authoritative.

    Every authoritative field is copied from the chosen entry, including
    absent start/end pages.

    Raises:
        InvalidStateError: If the work is not in DISCREPANCY, or the chosen
            stored entry is missing
    """
    status = next_status(work.check_status, CheckEvent.RESOLVE)

    if choice is ResolutionChoice.FIRST:
        chosen = work.first_entry
    elif choice is ResolutionChoice.SECOND:
        chosen = work.second_entry
    else:
        chosen = choice

    if chosen is None:
        raise InvalidStateError(
            "resolve", work.check_status, f"work has no {describe_resolution(choice)} entry"
        )

    return work.model_copy(update={
        **chosen.model_dump(),
        "check_status": status,
        "confirmed_at": now or utc_now(),
        "version": work.version + 1,
    })


def direct_create(issue_id: str, entry: EntrySnapshot, now: Optional[datetime] = None) -> Work:
    """Create a confirmed work without entry snapshots."""
    status = next_status(None, CheckEvent.DIRECT_CREATE)
    return Work(
        issue_id=issue_id,
        **entry.model_dump(),
        check_status=status,
        confirmed_at=now or utc_now(),
    )
