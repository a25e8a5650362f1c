"""
Discrepancy Detector

Field-by-field comparison of the two independent entries of a work.

Fields are compared in a fixed order and reported under their
exchange-document names. Equality is exact: an absent start/end page
never equals a present one.
"""

from typing import Iterable, Optional

from manuscript_fees.models.manuscript import (
    Author,
    Editor,
    EntrySnapshot,
    FieldDifference,
)


# (attribute, reported field name), in comparison order
COMPARED_FIELDS: tuple[tuple[str, str], ...] = (
    ("title", "title"),
    ("author_id", "authorId"),
    ("editor_id", "editorId"),
    ("pages_1c", "pages1C"),
    ("pages_4c", "pages4C"),
    ("start_page", "startPage"),
    ("end_page", "endPage"),
)

UNKNOWN_NAME = "unknown"


def compare(first: EntrySnapshot, second: EntrySnapshot) -> list[FieldDifference]:
    """
    Compare two entries.

    Returns:
        One FieldDifference per mismatching field, in comparison order.
        Empty if and only if all fields match.
    """
    differences = []
    for attribute, field_name in COMPARED_FIELDS:
        first_value = getattr(first, attribute)
        second_value = getattr(second, attribute)
        if first_value != second_value:
            differences.append(FieldDifference(
                field=field_name,
                first_value=first_value,
                second_value=second_value,
            ))
    return differences


def has_discrepancy(first: EntrySnapshot, second: EntrySnapshot) -> bool:
    return bool(compare(first, second))


def describe_differences(
    differences: list[FieldDifference],
    authors: Iterable[Author] = (),
    editors: Iterable[Editor] = (),
) -> list[dict[str, str]]:
    """
    Render a difference report for display.

    Author and editor ids become names ("unknown" when the reference does
    not resolve), absent page numbers become "-".
    """
    author_names = {author.id: author.name for author in authors}
    editor_names = {editor.id: editor.name for editor in editors}

    def render(field_name: str, value: Optional[object]) -> str:
        if field_name == "authorId":
            return author_names.get(value, UNKNOWN_NAME) if value else UNKNOWN_NAME
        if field_name == "editorId":
            return editor_names.get(value, UNKNOWN_NAME) if value else UNKNOWN_NAME
        if value is None:
            return "-"
        return str(value)

    return [
        {
            "field": diff.field,
            "first": render(diff.field, diff.first_value),
            "second": render(diff.field, diff.second_value),
        }
        for diff in differences
    ]
