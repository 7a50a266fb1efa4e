"""Payroll run and payslip state machines with transition validation."""

from __future__ import annotations

from enum import Enum

from hrms_payroll.exceptions import InvalidStateError


class PayrollRunStatus(str, Enum):
    """Payroll run status values."""

    DRAFT = "draft"
    PROCESSING = "processing"
    COMPLETED = "completed"
    PAID = "paid"


class PayslipStatus(str, Enum):
    """Payslip status values."""

    PENDING = "pending"
    DONE = "done"


class InvalidTransitionError(InvalidStateError):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class PayrollRunStateMachine:
    """State machine for payroll run status transitions.

    Allowed transitions:
    - draft → processing (process)
    - processing → completed (all employees handled)
    - completed → paid (validate)

    There are no backward transitions. A run left in processing by a crash
    is recovered by resuming it, which ends in completed.
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PayrollRunStatus.DRAFT: [PayrollRunStatus.PROCESSING],
        PayrollRunStatus.PROCESSING: [PayrollRunStatus.COMPLETED],
        PayrollRunStatus.COMPLETED: [PayrollRunStatus.PAID],
        PayrollRunStatus.PAID: [],  # Terminal state
    }

    # Statuses where payslips may still be written
    PAYSLIPS_WRITABLE = {
        PayrollRunStatus.PROCESSING,
    }

    # Statuses where notes may be edited
    NOTES_EDITABLE = {
        PayrollRunStatus.DRAFT,
        PayrollRunStatus.PROCESSING,
        PayrollRunStatus.COMPLETED,
    }

    # Statuses where every payslip of the run is locked
    PAYSLIPS_LOCKED = {
        PayrollRunStatus.PAID,
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def can_process(cls, status: str) -> bool:
        return status == PayrollRunStatus.DRAFT

    @classmethod
    def can_resume(cls, status: str) -> bool:
        return status == PayrollRunStatus.PROCESSING

    @classmethod
    def can_write_payslips(cls, status: str) -> bool:
        return status in cls.PAYSLIPS_WRITABLE

    @classmethod
    def can_edit_notes(cls, status: str) -> bool:
        return status in cls.NOTES_EDITABLE

    @classmethod
    def are_payslips_locked(cls, status: str) -> bool:
        return status in cls.PAYSLIPS_LOCKED


class PayslipStateMachine:
    """pending → done; done is terminal and immutable."""

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PayslipStatus.PENDING: [PayslipStatus.DONE],
        PayslipStatus.DONE: [],
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        return to_status in cls.VALID_TRANSITIONS.get(from_status, [])

    @classmethod
    def is_locked(cls, status: str) -> bool:
        return status == PayslipStatus.DONE
