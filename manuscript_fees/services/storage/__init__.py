"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage:
in-memory (tests), a local JSON file, and Google Sheets.
"""

from manuscript_fees.services.storage.interface import (
    AuditStorageInterface,
    ConcurrentUpdateError,
    ConnectionError,
    DuplicateError,
    FeeStorageInterface,
    NotFoundError,
    StorageError,
    WorkNotFoundError,
)
from manuscript_fees.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryFeeStorage,
    JsonFileFeeStorage,
)
from manuscript_fees.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsFeeStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "FeeStorageInterface",
    # Exceptions
    "ConcurrentUpdateError",
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    "WorkNotFoundError",
    # Local implementations
    "InMemoryAuditStorage",
    "InMemoryFeeStorage",
    "JsonFileFeeStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsFeeStorage",
]
