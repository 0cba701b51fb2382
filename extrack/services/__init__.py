"""Services package."""

from extrack.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    Database,
    SqlAuditStorage,
    StorageError,
    insert_if_absent,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "Database",
    "SqlAuditStorage",
    "StorageError",
    "insert_if_absent",
]
