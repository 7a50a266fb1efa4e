"""Audit emitter.

Handlers are isolated: a failing handler is logged and reported in the
returned error list, and never interrupts the payroll operation that
emitted the event or the other handlers.

Usage:
    emitter = AuditEmitter()
    emitter.on(AuditAction.RUN_VALIDATED, notify_finance)
    emitter.on_all(DatabaseAuditHandler(session_factory))
    await emitter.emit(record)
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Union

from hrms_payroll.events.types import AuditAction, AuditRecord

logger = logging.getLogger(__name__)

AuditHandler = Callable[[AuditRecord], Union[None, Awaitable[None]]]


@dataclass
class HandlerRegistration:
    """Registration of an audit handler."""

    handler: AuditHandler
    actions: set[AuditAction] | None  # None = all actions


class AuditEmitter:
    """Dispatches audit records to sync or async handlers."""

    def __init__(self) -> None:
        self._handlers: list[HandlerRegistration] = []

    def on(
        self,
        action: AuditAction | list[AuditAction],
        handler: AuditHandler,
    ) -> None:
        """Register handler for specific action(s)."""
        actions = set(action) if isinstance(action, list) else {action}
        self._handlers.append(HandlerRegistration(handler=handler, actions=actions))

    def on_all(self, handler: AuditHandler) -> None:
        """Register handler for every action."""
        self._handlers.append(HandlerRegistration(handler=handler, actions=None))

    def off(self, handler: AuditHandler) -> None:
        """Unregister a handler."""
        self._handlers = [
            reg for reg in self._handlers if reg.handler is not handler
        ]

    @property
    def handler_count(self) -> int:
        return len(self._handlers)

    async def emit(self, record: AuditRecord) -> list[Exception]:
        """Emit a record to all matching handlers.

        Returns list of any exceptions raised by handlers.
        """
        errors: list[Exception] = []
        tasks: list[asyncio.Task[None]] = []

        for reg in self._handlers:
            if reg.actions and record.action not in reg.actions:
                continue

            try:
                result = reg.handler(record)
            except Exception as e:
                logger.exception(
                    "Audit handler %s failed for %s",
                    reg.handler,
                    record.event_type,
                )
                errors.append(e)
                continue

            if inspect.isawaitable(result):
                tasks.append(asyncio.ensure_future(self._await_handler(reg.handler, record, result)))

        if tasks:
            results = await asyncio.gather(*tasks, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    errors.append(result)

        return errors

    async def _await_handler(
        self,
        handler: AuditHandler,
        record: AuditRecord,
        awaitable: Awaitable[Any],
    ) -> None:
        """Await an async handler with error logging."""
        try:
            await awaitable
        except Exception:
            logger.exception(
                "Async audit handler %s failed for %s",
                handler,
                record.event_type,
            )
            raise
