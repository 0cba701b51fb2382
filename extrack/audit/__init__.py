"""Audit logging package."""

from extrack.audit.logger import (
    AuditLogger,
    configure_logging,
    create_correlation_id,
    current_correlation_id,
)

__all__ = ["AuditLogger", "configure_logging", "create_correlation_id", "current_correlation_id"]
