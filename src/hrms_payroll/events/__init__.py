"""Audit events emitted on payroll state transitions."""

from hrms_payroll.events.emitter import AuditEmitter
from hrms_payroll.events.handlers import DatabaseAuditHandler, LoggingAuditHandler
from hrms_payroll.events.types import AuditAction, AuditRecord

__all__ = [
    "AuditEmitter",
    "DatabaseAuditHandler",
    "LoggingAuditHandler",
    "AuditAction",
    "AuditRecord",
]
