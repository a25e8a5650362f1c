"""
Fee Calculator

Pure functions mapping page counts and an author's base rate to a fee.

A monochrome (1C) page is paid at the author's base rate. A colour (4C)
page is paid at the base rate times a fixed surcharge multiplier, rounded
half-up to a whole currency unit. All amounts are whole currency units.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from manuscript_fees.models.manuscript import Author, Issue, WorkFields


COLOUR_RATE_MULTIPLIER = Decimal("1.3")


def colour_rate(base_rate: int) -> int:
    """Derive the 4C page rate from a 1C base rate."""
    if base_rate < 0:
        raise ValueError(f"Base rate must be non-negative, got {base_rate}")
    rate = Decimal(base_rate) * COLOUR_RATE_MULTIPLIER
    return int(rate.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def work_fee(work: WorkFields, author: Optional[Author]) -> int:
    """
    Fee payable for a work.

    Accepts a Work or an EntrySnapshot. An unresolved author yields 0:
    author references are not enforced, so a deleted author must not
    break fee totals.
    """
    if author is None:
        return 0

    base_rate = author.rate_per_page_1c
    return work.pages_1c * base_rate + work.pages_4c * colour_rate(base_rate)


def total_pages(work: WorkFields) -> int:
    return work.pages_1c + work.pages_4c


def issue_total_fee(issue: Issue, authors: Iterable[Author]) -> int:
    """Sum of the fees of every work in an issue, whatever its check status."""
    by_id = {author.id: author for author in authors}
    return sum(
        work_fee(work, by_id.get(work.author_id) if work.author_id else None)
        for work in issue.works
    )


def format_currency(amount: int, symbol: str = "¥") -> str:
    """Format a whole-unit amount, e.g. 89000 -> '¥89,000'."""
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,}"
