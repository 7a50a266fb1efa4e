"""Audit event types emitted by the payroll core.

Events are immutable snapshots of a state transition: the entity that
changed, who changed it, and its before/after state. Persisting them is
the job of whichever handlers are registered on the AuditEmitter.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


class AuditAction(str, Enum):
    """Audited payroll actions."""

    RUN_CREATED = "PAYROLL_RUN_CREATED"
    RUN_PROCESSED = "PAYROLL_PROCESSED"
    RUN_RESUMED = "PAYROLL_RUN_RESUMED"
    RUN_UPDATED = "PAYROLL_RUN_UPDATED"
    RUN_VALIDATED = "PAYROLL_RUN_VALIDATED"
    PAYSLIP_VALIDATED = "PAYSLIP_VALIDATED"


@dataclass(frozen=True)
class AuditRecord:
    """One audited state transition."""

    action: AuditAction
    entity_type: str
    entity_id: UUID
    actor_id: UUID | None = None
    before: dict[str, Any] | None = None
    after: dict[str, Any] | None = None
    event_id: UUID = field(default_factory=uuid4)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def event_type(self) -> str:
        return self.action.value

    def to_dict(self) -> dict[str, Any]:
        return serialize({
            "event_id": self.event_id,
            "action": self.action.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor_id": self.actor_id,
            "before": self.before,
            "after": self.after,
            "timestamp": self.timestamp,
        })

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


def serialize(obj: Any) -> Any:
    """Recursively convert values to JSON-compatible types."""
    if isinstance(obj, dict):
        return {k: serialize(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [serialize(v) for v in obj]
    elif isinstance(obj, UUID):
        return str(obj)
    elif isinstance(obj, Decimal):
        return str(obj)
    elif isinstance(obj, (datetime, date)):
        return obj.isoformat()
    elif isinstance(obj, Enum):
        return obj.value
    return obj


def snapshot(row: Any, fields: tuple[str, ...]) -> dict[str, Any]:
    """JSON-safe snapshot of selected attributes of an ORM row."""
    return serialize({name: getattr(row, name) for name in fields})
