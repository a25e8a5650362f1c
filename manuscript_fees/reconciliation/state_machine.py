"""
Reconciliation State Machine

The transition table for a work's check status. It is the single place
that decides which operation is legal in which status; capture and
resolution ask it before building a new Work.

    (new)         --capture_first-->           first_check
    first_check   --capture_second, match-->   second_check
    first_check   --capture_second, differ-->  discrepancy
    second_check  --confirm-->                 confirmed
    discrepancy   --resolve-->                 confirmed
    (new)         --direct_create-->           confirmed

CONFIRMED is terminal.
"""

from enum import Enum
from typing import Optional

from manuscript_fees.models.manuscript import CheckStatus
from manuscript_fees.reconciliation.errors import InvalidStateError


class CheckEvent(str, Enum):
    """Events that move a work through the check."""
    CAPTURE_FIRST = "capture_first"
    SECOND_MATCHED = "second_matched"
    SECOND_DIFFERED = "second_differed"
    CONFIRM = "confirm"
    RESOLVE = "resolve"
    DIRECT_CREATE = "direct_create"


# None stands for "no work yet"
TRANSITIONS: dict[tuple[Optional[CheckStatus], CheckEvent], CheckStatus] = {
    (None, CheckEvent.CAPTURE_FIRST): CheckStatus.FIRST_CHECK,
    (CheckStatus.FIRST_CHECK, CheckEvent.SECOND_MATCHED): CheckStatus.SECOND_CHECK,
    (CheckStatus.FIRST_CHECK, CheckEvent.SECOND_DIFFERED): CheckStatus.DISCREPANCY,
    (CheckStatus.SECOND_CHECK, CheckEvent.CONFIRM): CheckStatus.CONFIRMED,
    (CheckStatus.DISCREPANCY, CheckEvent.RESOLVE): CheckStatus.CONFIRMED,
    (None, CheckEvent.DIRECT_CREATE): CheckStatus.CONFIRMED,
}

# Human-facing operation names, used in error messages
_OPERATIONS = {
    CheckEvent.CAPTURE_FIRST: "capture the first entry of",
    CheckEvent.SECOND_MATCHED: "capture the second entry of",
    CheckEvent.SECOND_DIFFERED: "capture the second entry of",
    CheckEvent.CONFIRM: "confirm",
    CheckEvent.RESOLVE: "resolve",
    CheckEvent.DIRECT_CREATE: "directly create",
}


def next_status(current: Optional[CheckStatus], event: CheckEvent) -> CheckStatus:
    """
    Return the status reached from `current` on `event`.

    Raises:
        InvalidStateError: If the table has no such transition
    """
    try:
        return TRANSITIONS[(current, event)]
    except KeyError:
        raise InvalidStateError(_OPERATIONS[event], current) from None


def can_apply(current: Optional[CheckStatus], event: CheckEvent) -> bool:
    return (current, event) in TRANSITIONS


def is_terminal(status: CheckStatus) -> bool:
    """Only CONFIRMED is final. DRAFT has no transitions but is not an end state."""
    return status == CheckStatus.CONFIRMED
