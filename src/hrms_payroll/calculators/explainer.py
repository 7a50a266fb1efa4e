"""Display-time breakdown of a stored payslip.

Nothing here is a source of truth. The worked-days view uses its own
daily rate (basic / working days), unlike the batch computation which
divides full gross by days in month, and the other-allowances split uses
fixed ratios rather than stored sub-components.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Any

from hrms_payroll.calculators.payslip_calculator import summarize_attendance
from hrms_payroll.calculators.types import (
    ZERO,
    AttendanceLike,
    LeaveEntry,
    PayPeriod,
    money,
    to_decimal,
)

# (rule name, share of other_allowances); the last entry takes the remainder
OTHER_ALLOWANCE_SPLIT: tuple[tuple[str, Decimal], ...] = (
    ("Standard Allowance", Decimal("0.60")),
    ("Performance Bonus", Decimal("0.20")),
    ("Leave Travel Allowance", Decimal("0.20")),
)


@dataclass(frozen=True)
class WorkedDaysLine:
    description: str
    days: Decimal
    amount: Decimal


@dataclass
class WorkedDays:
    daily_rate: Decimal
    breakdown: list[WorkedDaysLine] = field(default_factory=list)

    @property
    def total_days(self) -> Decimal:
        return sum((line.days for line in self.breakdown), ZERO)

    @property
    def total_amount(self) -> Decimal:
        return sum((line.amount for line in self.breakdown), ZERO)

    def to_dict(self) -> dict[str, Any]:
        return {
            "daily_rate": self.daily_rate,
            "breakdown": [asdict(line) for line in self.breakdown],
            "total_days": self.total_days,
            "total_amount": self.total_amount,
        }


@dataclass(frozen=True)
class ComputationLine:
    rule_name: str
    rate_percent: Decimal
    amount: Decimal


@dataclass
class SalaryComputation:
    gross: list[ComputationLine]
    deductions: list[ComputationLine]
    net_amount: Decimal

    @property
    def gross_amount(self) -> Decimal:
        return sum((line.amount for line in self.gross), ZERO)

    @property
    def total_deductions(self) -> Decimal:
        return -sum((line.amount for line in self.deductions), ZERO)

    def to_dict(self) -> dict[str, Any]:
        return {
            "gross": [asdict(line) for line in self.gross],
            "deductions": [asdict(line) for line in self.deductions],
            "gross_amount": self.gross_amount,
            "total_deductions": self.total_deductions,
            "net_amount": self.net_amount,
        }


def display_daily_rate(basic_salary: Any, working_days: int) -> Decimal:
    """Basic salary per working day, as shown on the worked-days tab."""
    if not working_days:
        return ZERO
    return to_decimal(basic_salary) / Decimal(working_days)


def build_worked_days(
    payslip: Any,
    period: PayPeriod,
    attendance: Iterable[AttendanceLike],
    leaves: Iterable[LeaveEntry],
) -> WorkedDays:
    """Re-derive present and paid-leave days and value them at the display rate."""
    rate = display_daily_rate(payslip.basic_salary, payslip.working_days)
    summary = summarize_attendance(period, attendance, leaves)

    present = Decimal(summary.present_days)
    paid_leave = summary.paid_leave_days

    lines = [
        WorkedDaysLine("Attendance", present, money(present * rate)),
        WorkedDaysLine("Paid Time Off", paid_leave, money(paid_leave * rate)),
    ]
    if summary.half_days:
        lines.append(WorkedDaysLine("Half Day (not counted)", Decimal(summary.half_days), ZERO))

    return WorkedDays(daily_rate=money(rate), breakdown=lines)


def _rate_of(amount: Decimal, base: Decimal) -> Decimal:
    if not base:
        return ZERO
    return money(amount / base * 100)


def split_other_allowances(other_allowances: Decimal) -> list[tuple[str, Decimal]]:
    """Apportion other_allowances by the fixed display ratios.

    Parts are rounded to cents; the last part absorbs the rounding so the
    parts always add back up to the stored amount.
    """
    parts: list[tuple[str, Decimal]] = []
    allocated = ZERO
    for index, (name, share) in enumerate(OTHER_ALLOWANCE_SPLIT):
        if index == len(OTHER_ALLOWANCE_SPLIT) - 1:
            amount = other_allowances - allocated
        else:
            amount = money(other_allowances * share)
            allocated += amount
        parts.append((name, amount))
    return parts


def build_salary_computation(payslip: Any) -> SalaryComputation:
    """Gross components as a share of full gross, then deductions."""
    basic = to_decimal(payslip.basic_salary)
    full_gross = (
        basic
        + to_decimal(payslip.hra)
        + to_decimal(payslip.transport_allowance)
        + to_decimal(payslip.medical_allowance)
        + to_decimal(payslip.other_allowances)
    )

    components = [
        ("Basic Salary", basic),
        ("House Rent Allowance", to_decimal(payslip.hra)),
        ("Transport Allowance", to_decimal(payslip.transport_allowance)),
        ("Medical Allowance", to_decimal(payslip.medical_allowance)),
        *split_other_allowances(to_decimal(payslip.other_allowances)),
    ]
    gross = [
        ComputationLine(name, _rate_of(amount, full_gross), amount)
        for name, amount in components
    ]

    # Keeps the gross section summing to the stored gross salary.
    adjustment = to_decimal(payslip.gross_salary) - full_gross
    if adjustment:
        gross.append(
            ComputationLine("Unpaid Days Adjustment", _rate_of(adjustment, full_gross), adjustment)
        )

    pf = to_decimal(payslip.pf_employee)
    professional_tax = to_decimal(payslip.professional_tax)
    other = to_decimal(payslip.other_deductions)
    deductions = [
        ComputationLine("Provident Fund", _rate_of(pf, basic), -pf),
        ComputationLine("Professional Tax", _rate_of(professional_tax, full_gross), -professional_tax),
        ComputationLine("Other Deductions", _rate_of(other, full_gross), -other),
    ]

    return SalaryComputation(
        gross=gross,
        deductions=deductions,
        net_amount=to_decimal(payslip.net_salary),
    )
