"""
Export and Import

DESIGN DECISION: The JSON document is the only exchange format that can
be read back. It carries every entity, including the first/second entries
of works, so reconciliation status is reproducible after a reload.
An absent start/end page is left out of the document rather than written
as null, and stays absent after import.

CSV is a one-way fee sheet for spreadsheets: UTF-8 with a BOM so Excel
detects the encoding, every cell quoted.
"""

import csv
import io
import json
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from manuscript_fees.models.manuscript import FeeDocument
from manuscript_fees.queries.fee_report import fee_lines


DEFAULT_JSON_FILENAME = "manuscript-fee-data.json"
DEFAULT_CSV_FILENAME = "manuscript-fee-data.csv"

REQUIRED_KEYS = ("magazines", "authors", "editors")

CSV_HEADER = [
    "Magazine",
    "Issue",
    "Release date",
    "Title",
    "Author",
    "1C rate",
    "4C rate",
    "1C pages",
    "4C pages",
    "Total pages",
    "Fee",
    "Editor",
    "Status",
]

BOM = "\ufeff"


class ImportFormatError(Exception):
    """The imported text is not a valid fee document."""

    def __init__(self, message: str, errors: Optional[list[dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []


# =============================================================================
# JSON
# =============================================================================

def export_json(document: FeeDocument) -> str:
    """Serialize the whole entity graph as pretty-printed JSON."""
    return json.dumps(document.to_json_dict(), indent=2, ensure_ascii=False)


def import_json(text: str) -> FeeDocument:
    """
    Parse and validate a JSON fee document.

    Raises:
        ImportFormatError: "Invalid JSON format" when the text doesn't parse,
            "Invalid data format" when a top-level key is missing or an
            entity fails validation (details in .errors)
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ImportFormatError("Invalid JSON format") from e

    if not isinstance(data, dict) or any(key not in data for key in REQUIRED_KEYS):
        raise ImportFormatError("Invalid data format")

    try:
        return FeeDocument.model_validate(data)
    except PydanticValidationError as e:
        raise ImportFormatError(
            "Invalid data format",
            errors=e.errors(include_url=False, include_context=False),
        ) from e


def write_json_file(document: FeeDocument, path: Union[str, Path] = DEFAULT_JSON_FILENAME) -> Path:
    path = Path(path)
    path.write_text(export_json(document), encoding="utf-8")
    return path


def read_json_file(path: Union[str, Path]) -> FeeDocument:
    """
    Read a JSON fee document from disk.

    Raises:
        ImportFormatError: "Failed to read file", or any import_json error
    """
    try:
        text = Path(path).read_text(encoding="utf-8-sig")
    except OSError as e:
        raise ImportFormatError("Failed to read file") from e
    return import_json(text)


# =============================================================================
# CSV
# =============================================================================

def csv_rows(document: FeeDocument) -> list[list[str]]:
    """Header plus one row per work. Unknown authors/editors are left blank."""
    rows = [list(CSV_HEADER)]
    for line in fee_lines(document):
        rows.append([
            line.magazine_name,
            line.issue_number,
            line.release_date.isoformat(),
            line.title,
            line.author_name if line.author_resolved else "",
            str(line.rate_1c) if line.rate_1c is not None else "",
            str(line.rate_4c) if line.rate_4c is not None else "",
            str(line.pages_1c),
            str(line.pages_4c),
            str(line.total_pages),
            str(line.fee),
            line.editor_name if line.editor_resolved else "",
            line.check_status.value,
        ])
    return rows


def export_csv(document: FeeDocument) -> str:
    """Render the fee sheet as CSV text, BOM included."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerows(csv_rows(document))
    return BOM + buffer.getvalue()


def write_csv_file(document: FeeDocument, path: Union[str, Path] = DEFAULT_CSV_FILENAME) -> Path:
    path = Path(path)
    with path.open("w", encoding="utf-8", newline="") as f:
        f.write(export_csv(document))
    return path
