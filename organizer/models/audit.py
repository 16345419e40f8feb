"""
Audit Models

Every executed command is logged for audit purposes.
This provides:
1. Traceability of what the assistant changed
2. Debugging information when a command misbehaves

DESIGN DECISION: Audit logs are append-only and bounded.
Old entries roll off; nothing is ever edited in place.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from organizer.models.aggregate import OrganizerModel, generate_id, utc_now


class Command(BaseModel):
    """
    A structured command: one entity, one action, free-form params.

    Produced by the (external) text parser, consumed by CommandExecutor.
    """

    entity: str = Field(
        ...,
        min_length=1,
        description="Target entity (e.g. 'habit', 'journal', 'finance')"
    )
    action: str = Field(
        ...,
        min_length=1,
        description="Action to perform (e.g. 'create', 'delete', 'complete')"
    )
    params: dict[str, Any] = Field(default_factory=dict)


class CommandResult(BaseModel):
    """Outcome of executing a command."""

    ok: bool
    message: Optional[str] = None
    result: Optional[Any] = None


class AuditEntry(OrganizerModel):
    """
    A single audit record.

    The command and its result are stored as plain JSON so the log stays
    readable even if the command models evolve.
    """

    id: str = Field(default_factory=generate_id)
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the command ran (UTC)"
    )
    command: dict[str, Any] = Field(default_factory=dict)
    result: dict[str, Any] = Field(default_factory=dict)
    actor: Optional[str] = Field(
        default=None,
        description="Who issued the command (e.g. 'assistant')"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "audit_id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "entity": self.command.get("entity"),
            "action": self.command.get("action"),
            "ok": self.result.get("ok"),
            "message": self.result.get("message"),
            "actor": self.actor,
        }
