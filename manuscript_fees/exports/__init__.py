"""Export and import of the fee document."""

from manuscript_fees.exports.exporter import (
    BOM,
    CSV_HEADER,
    DEFAULT_CSV_FILENAME,
    DEFAULT_JSON_FILENAME,
    ImportFormatError,
    csv_rows,
    export_csv,
    export_json,
    import_json,
    read_json_file,
    write_csv_file,
    write_json_file,
)

__all__ = [
    "BOM",
    "CSV_HEADER",
    "DEFAULT_CSV_FILENAME",
    "DEFAULT_JSON_FILENAME",
    "ImportFormatError",
    "csv_rows",
    "export_csv",
    "export_json",
    "import_json",
    "read_json_file",
    "write_csv_file",
    "write_json_file",
]
