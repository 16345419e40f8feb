"""Audit logging package."""

from organizer.audit.logger import AuditLogger, configure_logging

__all__ = ["AuditLogger", "configure_logging"]
