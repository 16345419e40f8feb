"""
Audit Logger

DESIGN DECISION: Every command executed on behalf of the assistant is logged.
This provides:
1. Traceability of what changed and why
2. Debugging capability when a command misbehaves
3. A history the user can inspect

The audit logger:
- Persists a bounded log (oldest entries roll off) in the local key-value store
- Gracefully handles failures (never breaks a command if logging fails)
- Mirrors every entry to the structured log

This module also owns the structlog configuration used across the engine.
"""

import json
import logging
from typing import Any, Optional

import structlog
from pydantic import TypeAdapter, ValidationError

from organizer.models.audit import AuditEntry, Command, CommandResult
from organizer.services.storage.interface import (
    KeyValueStoreInterface,
    LocalStoreError,
)


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structlog (JSON lines over stdlib logging)."""
    logging.basicConfig(format="%(message)s", level=log_level)
    logging.getLogger().setLevel(log_level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


# Configure structlog for local logging
configure_logging()

_AUDIT_LIST = TypeAdapter(list[AuditEntry])


class AuditLogger:
    """
    Bounded, persisted command audit log.

    Logs entries both to:
    1. Structured local log (for debugging)
    2. The key-value store (for the user-visible history)
    """

    def __init__(
        self,
        kv_store: Optional[KeyValueStoreInterface],
        key: str = "glowup-audit-log",
        max_entries: int = 200,
    ):
        """
        Initialize audit logger.

        Args:
            kv_store: Storage backend for persistence.
                      If None, only logs locally.
            key: Key holding the audit list
            max_entries: Entries kept; older ones are dropped
        """
        self._kv = kv_store
        self._key = key
        self._max_entries = max_entries
        self._logger = structlog.get_logger(__name__)

    def log_command(
        self,
        command: Command,
        result: CommandResult,
        actor: Optional[str] = None,
    ) -> Optional[AuditEntry]:
        """
        Record one executed command.

        Always logs locally. Returns the stored entry, or None if it could
        not be persisted.
        """
        entry = AuditEntry(
            command=command.model_dump(mode="json"),
            result=result.model_dump(mode="json"),
            actor=actor,
        )

        log_dict = entry.to_log_dict()
        if result.ok:
            self._logger.info("command_executed", **log_dict)
        else:
            self._logger.warning("command_failed", **log_dict)

        if self._kv is None:
            return entry

        try:
            entries = self._read()
            entries.append(entry)
            self._write(entries[-self._max_entries:])
        except LocalStoreError as e:
            # Log failure but don't raise
            self._logger.error(
                "audit_storage_failed",
                error=str(e),
                audit_id=entry.id,
            )
            return None

        return entry

    def get_entries(self) -> list[AuditEntry]:
        """Stored entries, oldest first. Unreadable logs read as empty."""
        if self._kv is None:
            return []
        try:
            return self._read()
        except LocalStoreError as e:
            self._logger.error("audit_read_failed", error=str(e))
            return []

    def clear(self) -> bool:
        if self._kv is None:
            return True
        try:
            self._kv.delete(self._key)
            return True
        except LocalStoreError as e:
            self._logger.error("audit_clear_failed", error=str(e))
            return False

    def _read(self) -> list[AuditEntry]:
        raw = self._kv.get(self._key)
        if raw is None:
            return []
        try:
            return _AUDIT_LIST.validate_json(raw)
        except ValidationError:
            self._logger.warning("audit_log_unreadable", key=self._key)
            return []

    def _write(self, entries: list[AuditEntry]) -> None:
        payload: list[dict[str, Any]] = [
            e.model_dump(mode="json", by_alias=True) for e in entries
        ]
        self._kv.set(self._key, json.dumps(payload, ensure_ascii=False))
