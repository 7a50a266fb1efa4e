"""Type definitions for the payslip calculation pipeline."""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Protocol, Union
from uuid import UUID

CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    """Coerce a DB/JSON value to Decimal; None becomes zero."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def money(value: Decimal) -> Decimal:
    """Round to cents, half up."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


class SkipReason(str, Enum):
    """Why an employee was excluded from a run."""

    NO_SALARY_STRUCTURE = "no_salary_structure"
    ALREADY_PROCESSED = "already_processed"
    NOT_PROCESSED = "not_processed"
    COMPUTATION_FAILED = "computation_failed"


@dataclass(frozen=True)
class PayPeriod:
    """Calendar month covered by a run."""

    month: int
    year: int

    @property
    def start(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def end(self) -> date:
        return date(self.year, self.month, self.days_in_month)

    @property
    def days_in_month(self) -> int:
        return calendar.monthrange(self.year, self.month)[1]

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def overlaps(self, start: date, end: date) -> bool:
        return start <= self.end and end >= self.start

    @property
    def label(self) -> str:
        return f"{calendar.month_name[self.month]} {self.year}"


@dataclass(frozen=True)
class PayrollSettings:
    """Snapshot of the system settings a run computes with."""

    pf_percentage: Decimal = Decimal("12")
    professional_tax_amount: Decimal = Decimal("200")
    working_hours_per_day: Decimal = Decimal("8")


class SalaryStructureLike(Protocol):
    """Attributes the calculator reads from a salary structure."""

    basic_salary: Any
    hra: Any
    transport_allowance: Any
    medical_allowance: Any
    other_allowances: Any
    professional_tax: Any
    other_deductions: Any


class AttendanceLike(Protocol):
    attendance_date: date
    status: str


@dataclass(frozen=True)
class LeaveEntry:
    """Leave application resolved against its leave type."""

    start_date: date
    end_date: date
    total_days: Decimal
    is_paid: bool
    status: str = "approved"
    leave_application_id: UUID | None = None


@dataclass(frozen=True)
class AttendanceSummary:
    """Day counts derived from attendance and leave for one period."""

    present_days: int = 0
    absent_days: int = 0
    half_days: int = 0
    paid_leave_days: Decimal = ZERO
    unpaid_leave_days: Decimal = ZERO

    @property
    def unpaid_days(self) -> Decimal:
        return Decimal(self.absent_days) + self.unpaid_leave_days


@dataclass
class PayslipDraft:
    """A computed payslip before persistence."""

    user_id: UUID
    payroll_run_id: UUID

    basic_salary: Decimal
    hra: Decimal
    transport_allowance: Decimal
    medical_allowance: Decimal
    other_allowances: Decimal
    gross_salary: Decimal

    pf_employee: Decimal
    pf_employer: Decimal
    professional_tax: Decimal
    other_deductions: Decimal
    total_deductions: Decimal
    net_salary: Decimal

    working_days: int
    present_days: int
    leave_days: Decimal
    absent_days: Decimal

    # Not persisted; kept for logging and tests
    full_gross_salary: Decimal = ZERO
    daily_rate: Decimal = ZERO
    attendance_adjustment: Decimal = ZERO
    notes: list[str] = field(default_factory=list)

    def to_row(self) -> dict[str, Any]:
        """Column values for the payslip table."""
        return {
            "payroll_run_id": self.payroll_run_id,
            "user_id": self.user_id,
            "basic_salary": self.basic_salary,
            "hra": self.hra,
            "transport_allowance": self.transport_allowance,
            "medical_allowance": self.medical_allowance,
            "other_allowances": self.other_allowances,
            "gross_salary": self.gross_salary,
            "pf_employee": self.pf_employee,
            "pf_employer": self.pf_employer,
            "professional_tax": self.professional_tax,
            "other_deductions": self.other_deductions,
            "total_deductions": self.total_deductions,
            "net_salary": self.net_salary,
            "working_days": self.working_days,
            "present_days": self.present_days,
            "leave_days": self.leave_days,
            "absent_days": self.absent_days,
        }


@dataclass(frozen=True)
class PayslipSkip:
    """An employee excluded from a run, with the reason."""

    user_id: UUID
    reason: SkipReason
    detail: str | None = None


ComputationOutcome = Union[PayslipDraft, PayslipSkip]
