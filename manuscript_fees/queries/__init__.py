"""Fee report package."""

from manuscript_fees.queries.fee_report import (
    FeeReporter,
    IssueFeeStatement,
    WorkFeeLine,
    author_totals,
    build_fee_line,
    build_issue_statement,
    fee_lines,
)

__all__ = [
    "FeeReporter",
    "IssueFeeStatement",
    "WorkFeeLine",
    "author_totals",
    "build_fee_line",
    "build_issue_statement",
    "fee_lines",
]
