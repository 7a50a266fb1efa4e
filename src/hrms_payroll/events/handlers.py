"""Built-in audit handlers."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hrms_payroll.events.types import AuditRecord
from hrms_payroll.models import AuditEvent

logger = logging.getLogger(__name__)


class DatabaseAuditHandler:
    """Persists audit records to the audit_event table.

    Writes in its own session so a failed audit insert never rolls back
    the payroll transaction that produced the record.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def __call__(self, record: AuditRecord) -> None:
        data = record.to_dict()
        async with self.session_factory() as session:
            session.add(
                AuditEvent(
                    audit_event_id=record.event_id,
                    actor_user_id=record.actor_id,
                    entity_type=record.entity_type,
                    entity_id=record.entity_id,
                    action=record.action.value,
                    before_json=data["before"],
                    after_json=data["after"],
                )
            )
            await session.commit()


class LoggingAuditHandler:
    """Writes audit records to the log."""

    def __init__(self, level: int = logging.INFO):
        self.level = level

    def __call__(self, record: AuditRecord) -> None:
        logger.log(
            self.level,
            "audit action=%s entity=%s:%s actor=%s",
            record.action.value,
            record.entity_type,
            record.entity_id,
            record.actor_id,
        )
