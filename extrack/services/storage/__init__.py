"""
Storage Services Package

Provides the injected relational database handle, the ORM tables and the
audit storage interface with its SQL implementation.
"""

from extrack.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    StorageError,
)
from extrack.services.storage.sqlalchemy_store import (
    Database,
    SqlAuditStorage,
    insert_if_absent,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    # Exceptions
    "ConnectionError",
    "StorageError",
    # SQLAlchemy implementation
    "Database",
    "SqlAuditStorage",
    "insert_if_absent",
]
