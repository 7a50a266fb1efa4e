"""Typed exceptions for the payroll engine.

Every exception carries a machine-readable ``code`` so callers (the API
layer, the operator CLI) can branch on type instead of parsing messages.

    PayrollError
    +-- DuplicateRunError
    +-- NotFoundError
    +-- InvalidStateError
    |   +-- InvalidTransitionError   (services.state_machine)
    +-- LockedError
    +-- AccessDeniedError
    +-- PayrollValidationError

A missing salary structure is not an exception: batch processing reports
it as a skip result (see calculators.types.PayslipSkip).
"""

from __future__ import annotations

from typing import Any
from uuid import UUID


class PayrollError(Exception):
    """Base class for payroll engine errors."""

    code: str = "PAYROLL_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "code": self.code}


class DuplicateRunError(PayrollError):
    """A payroll run already exists for the requested period."""

    code = "DUPLICATE_RUN"

    def __init__(self, month: int, year: int):
        self.month = month
        self.year = year
        super().__init__(f"Payroll run for {year}-{month:02d} already exists")


class NotFoundError(PayrollError):
    """Referenced entity does not exist."""

    code = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: UUID | str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} not found")


class InvalidStateError(PayrollError):
    """Action is not valid for the entity's current lifecycle state."""

    code = "INVALID_STATE"


class LockedError(PayrollError):
    """Mutation attempted on a validated record."""

    code = "LOCKED"

    def __init__(self, entity_type: str, entity_id: UUID | str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} is validated and cannot be modified")


class AccessDeniedError(PayrollError):
    """Caller may not read the requested payslip."""

    code = "ACCESS_DENIED"

    def __init__(self, message: str = "Access denied"):
        super().__init__(message)


class PayrollValidationError(PayrollError):
    """Input failed validation."""

    code = "VALIDATION_ERROR"
