"""
Two-Stage Entry Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence (capturer name, title, author)
- This catches incomplete forms before anything is written

STAGE 2 - SEMANTIC VALIDATION:
- Author/editor references that don't resolve
- Start/end pages that disagree with the page counts
- Works with no pages at all
- This catches mistakes a person makes while reading the printed issue

WHY TWO STAGES:
1. A form with missing fields gets one clear list of what to fill in
2. Reference checks need the store; the schema stage does not

IMPORTANT: Nothing here rewrites an entry.
Semantic findings are warnings: the double entry itself is the
safety net for wrong numbers, so they never block a capture.
"""

from typing import Literal, Optional

from manuscript_fees.config import get_settings
from manuscript_fees.models.manuscript import (
    EntrySnapshot,
    ValidationIssue,
    ValidationResult,
)
from manuscript_fees.services.storage.interface import FeeStorageInterface


Stage = Literal["first", "second", "direct"]


class EntryValidator:
    """
    Validates work entries through a two-stage pipeline.

    Stage 1: Schema validation (can run without storage)
    Stage 2: Semantic validation (uses storage for reference checks)

    What is required depends on how the entry is made:
    - first entry: capturer, title and author
    - second entry: capturer only (a blank field simply shows up as a discrepancy)
    - direct entry: title, author and editor
    """

    def __init__(
        self,
        storage: Optional[FeeStorageInterface] = None,
        check_page_ranges: Optional[bool] = None,
    ):
        """
        Initialize validator.

        Args:
            storage: Storage interface for reference checks.
                     If None, reference checking is skipped.
            check_page_ranges: Override the validate_page_ranges setting.
        """
        self._storage = storage
        if check_page_ranges is None:
            check_page_ranges = get_settings().app.validate_page_ranges
        self._check_page_ranges = check_page_ranges

    def _validate_schema(
        self,
        entry: EntrySnapshot,
        captured_by: Optional[str],
        stage: Stage,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []
        strict = stage in ("first", "direct")

        if stage != "direct" and not (captured_by or "").strip():
            issues.append(ValidationIssue(
                field="captured_by",
                issue_type="missing",
                message="The name of the person entering the data is required",
                severity="error",
                suggested_fix="Enter your name before submitting",
            ))

        if not entry.title:
            issues.append(ValidationIssue(
                field="title",
                issue_type="missing",
                message="Title is required",
                severity="error" if strict else "warning",
                suggested_fix="Copy the title from the table of contents",
            ))

        if entry.author_id is None:
            issues.append(ValidationIssue(
                field="authorId",
                issue_type="missing",
                message="No author selected",
                severity="error" if strict else "warning",
                suggested_fix="Select the author of the work",
            ))

        if entry.editor_id is None:
            issues.append(ValidationIssue(
                field="editorId",
                issue_type="missing",
                message="No editor selected",
                severity="error" if stage == "direct" else "warning",
                suggested_fix="Select the editor in charge of the work",
            ))

        # Warnings do not fail the schema stage
        is_valid = not any(issue.severity == "error" for issue in issues)

        return is_valid, issues

    def _validate_page_range(self, entry: EntrySnapshot) -> list[ValidationIssue]:
        """Cross-check start/end pages against the page counts."""
        issues = []

        if entry.start_page is None or entry.end_page is None:
            if entry.start_page is not None or entry.end_page is not None:
                issues.append(ValidationIssue(
                    field="startPage" if entry.start_page is None else "endPage",
                    issue_type="missing",
                    message="Only one of start page and end page was entered",
                    severity="info",
                ))
            return issues

        if entry.end_page < entry.start_page:
            issues.append(ValidationIssue(
                field="endPage",
                issue_type="inconsistent",
                message=f"End page ({entry.end_page}) is before start page ({entry.start_page})",
                severity="warning",
                suggested_fix="Check the page numbers in the printed issue",
            ))
            return issues

        span = entry.end_page - entry.start_page + 1
        if entry.total_pages and span != entry.total_pages:
            issues.append(ValidationIssue(
                field="pages",
                issue_type="inconsistent",
                message=(
                    f"Pages {entry.start_page}-{entry.end_page} cover {span} pages, "
                    f"but 1C + 4C = {entry.total_pages}"
                ),
                severity="warning",
                suggested_fix="Recount the 1C and 4C pages",
            ))

        return issues

    async def _validate_semantic(
        self,
        entry: EntrySnapshot,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if entry.total_pages == 0:
            issues.append(ValidationIssue(
                field="pages",
                issue_type="suspicious_value",
                message="The work has no 1C or 4C pages",
                severity="warning",
                suggested_fix="Enter the page counts",
            ))

        if self._check_page_ranges:
            issues.extend(self._validate_page_range(entry))

        issues.extend(await self._check_references(entry))

        is_valid = not any(issue.severity == "error" for issue in issues)

        return is_valid, issues

    async def _check_references(
        self,
        entry: EntrySnapshot,
    ) -> list[ValidationIssue]:
        """
        Check that author and editor references resolve.

        Referential integrity is not enforced: a dangling reference is
        reported as a warning and the fee simply comes out as 0.
        """
        issues = []

        if self._storage is None:
            return issues

        if entry.author_id is not None and await self._storage.find_author(entry.author_id) is None:
            issues.append(ValidationIssue(
                field="authorId",
                issue_type="unresolved_reference",
                message=f"Author {entry.author_id} does not exist; the fee will be 0",
                severity="warning",
                suggested_fix="Select an existing author",
            ))

        if entry.editor_id is not None and await self._storage.find_editor(entry.editor_id) is None:
            issues.append(ValidationIssue(
                field="editorId",
                issue_type="unresolved_reference",
                message=f"Editor {entry.editor_id} does not exist",
                severity="warning",
                suggested_fix="Select an existing editor",
            ))

        return issues

    async def validate(
        self,
        entry: EntrySnapshot,
        captured_by: Optional[str] = None,
        stage: Stage = "first",
    ) -> ValidationResult:
        """
        Validate an entry for the given capture stage.

        Args:
            entry: The entry to validate
            captured_by: Name of the person entering the data
            stage: "first", "second" or "direct"

        Returns:
            ValidationResult with the issues of both stages
        """
        all_issues = []

        schema_valid, schema_issues = self._validate_schema(entry, captured_by, stage)
        all_issues.extend(schema_issues)

        # References are meaningless on an incomplete form
        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = await self._validate_semantic(entry)
            all_issues.extend(semantic_issues)

        warnings = [issue.message for issue in all_issues if issue.severity == "warning"]

        return ValidationResult(
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
            warnings=warnings,
        )

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Render a result as text for the person entering the data.
        """
        if result.is_valid and not result.warnings:
            return "✅ All checks passed."

        lines = []

        if not result.schema_valid:
            lines.append("❌ Some required information is missing:")
            for issue in result.errors:
                lines.append(f"   • {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
