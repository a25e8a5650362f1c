"""Services package."""

from manuscript_fees.services.storage import (
    AuditStorageInterface,
    ConcurrentUpdateError,
    ConnectionError,
    DuplicateError,
    FeeStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsFeeStorage,
    InMemoryAuditStorage,
    InMemoryFeeStorage,
    JsonFileFeeStorage,
    NotFoundError,
    StorageError,
    WorkNotFoundError,
)

__all__ = [
    "AuditStorageInterface",
    "ConcurrentUpdateError",
    "ConnectionError",
    "DuplicateError",
    "FeeStorageInterface",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsFeeStorage",
    "InMemoryAuditStorage",
    "InMemoryFeeStorage",
    "JsonFileFeeStorage",
    "NotFoundError",
    "StorageError",
    "WorkNotFoundError",
]
