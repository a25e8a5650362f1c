"""Entry validation package."""

from manuscript_fees.validation.validator import EntryValidator, Stage

__all__ = ["EntryValidator", "Stage"]
