"""Fee calculation package."""

from manuscript_fees.fees.calculator import (
    COLOUR_RATE_MULTIPLIER,
    colour_rate,
    format_currency,
    issue_total_fee,
    total_pages,
    work_fee,
)

__all__ = [
    "COLOUR_RATE_MULTIPLIER",
    "colour_rate",
    "format_currency",
    "issue_total_fee",
    "total_pages",
    "work_fee",
]
