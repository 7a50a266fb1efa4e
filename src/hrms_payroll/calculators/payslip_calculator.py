"""Monthly payslip computation.

Pure function of (employee, period, salary structure, attendance, approved
leave, settings). No I/O: the run service loads the inputs and persists
the result.

Pipeline (stable order per employee):
1) Resolve the active salary structure (skip the employee if none)
2) Days in the run's calendar month
3) Count present / absent attendance days inside the period
4) Sum approved leave overlapping the period, split paid / unpaid
5) Full gross = sum of the five components (not prorated)
6) Batch daily rate = full gross / days in month
7) Attendance adjustment = -(daily rate * (absent + unpaid leave days)),
   bounded so gross never drops below zero
8) PF (employee and employer) on unprorated basic at the settings rate
9) Professional tax from the structure, else the settings default
10) Net = gross - (PF employee + professional tax + other deductions)
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import Decimal
from uuid import UUID

from hrms_payroll.calculators.types import (
    ZERO,
    AttendanceLike,
    AttendanceSummary,
    ComputationOutcome,
    LeaveEntry,
    PayPeriod,
    PayrollSettings,
    PayslipDraft,
    PayslipSkip,
    SalaryStructureLike,
    SkipReason,
    money,
    to_decimal,
)

PRESENT = "present"
ABSENT = "absent"
HALF_DAY = "half-day"
APPROVED = "approved"


class PayslipCalculator:
    """Computes one employee's payslip for one run."""

    def __init__(self, settings: PayrollSettings):
        self.settings = settings

    def compute(
        self,
        *,
        user_id: UUID,
        payroll_run_id: UUID,
        period: PayPeriod,
        structure: SalaryStructureLike | None,
        attendance: Iterable[AttendanceLike],
        leaves: Iterable[LeaveEntry],
    ) -> ComputationOutcome:
        """Compute a payslip draft, or a skip if the employee has no structure."""
        if structure is None:
            return PayslipSkip(
                user_id=user_id,
                reason=SkipReason.NO_SALARY_STRUCTURE,
                detail="No active salary structure",
            )

        days_in_month = period.days_in_month
        summary = summarize_attendance(period, attendance, leaves)

        basic = to_decimal(structure.basic_salary)
        hra = to_decimal(structure.hra)
        transport = to_decimal(structure.transport_allowance)
        medical = to_decimal(structure.medical_allowance)
        other_allowances = to_decimal(structure.other_allowances)
        full_gross = basic + hra + transport + medical + other_allowances

        daily_rate = self.batch_daily_rate(full_gross, days_in_month)
        adjustment = self.attendance_adjustment(daily_rate, summary.unpaid_days, full_gross)
        gross = full_gross + adjustment

        pf = self.settings_pf_amount(basic)
        professional_tax = self.professional_tax_for(structure)
        other_deductions = to_decimal(structure.other_deductions)
        total_deductions = pf + professional_tax + other_deductions
        net = gross - total_deductions

        notes: list[str] = []
        if net < 0:
            notes.append(f"Negative net salary: {net}")
        if summary.half_days:
            notes.append(f"{summary.half_days} half-day record(s) not counted")

        return PayslipDraft(
            user_id=user_id,
            payroll_run_id=payroll_run_id,
            basic_salary=basic,
            hra=hra,
            transport_allowance=transport,
            medical_allowance=medical,
            other_allowances=other_allowances,
            gross_salary=gross,
            pf_employee=pf,
            pf_employer=pf,
            professional_tax=professional_tax,
            other_deductions=other_deductions,
            total_deductions=total_deductions,
            net_salary=net,
            working_days=days_in_month,
            present_days=summary.present_days,
            leave_days=summary.paid_leave_days,
            absent_days=summary.unpaid_days,
            full_gross_salary=full_gross,
            daily_rate=daily_rate,
            attendance_adjustment=adjustment,
            notes=notes,
        )

    @staticmethod
    def batch_daily_rate(full_gross: Decimal, days_in_month: int) -> Decimal:
        """Daily rate used for unpaid-day deductions. Left unrounded."""
        return full_gross / Decimal(days_in_month)

    @staticmethod
    def attendance_adjustment(
        daily_rate: Decimal, unpaid_days: Decimal, full_gross: Decimal
    ) -> Decimal:
        """Negative amount for unpaid days; never larger than full gross."""
        if unpaid_days <= 0:
            return ZERO
        return -money(min(daily_rate * unpaid_days, full_gross))

    def settings_pf_amount(self, basic_salary: Decimal) -> Decimal:
        """PF on unprorated basic at the system-wide percentage."""
        return money(basic_salary * self.settings.pf_percentage / 100)

    def professional_tax_for(self, structure: SalaryStructureLike) -> Decimal:
        # Zero on the structure means "not set", as for a missing value.
        own = to_decimal(structure.professional_tax)
        if own:
            return own
        return to_decimal(self.settings.professional_tax_amount)


def summarize_attendance(
    period: PayPeriod,
    attendance: Iterable[AttendanceLike],
    leaves: Iterable[LeaveEntry],
) -> AttendanceSummary:
    """Count attendance days in the period and sum overlapping approved leave.

    Leave contributes its full total_days even when the application extends
    past the period boundary.
    """
    present = absent = half = 0
    for record in attendance:
        if not period.contains(record.attendance_date):
            continue
        if record.status == PRESENT:
            present += 1
        elif record.status == ABSENT:
            absent += 1
        elif record.status == HALF_DAY:
            half += 1

    paid_leave = ZERO
    unpaid_leave = ZERO
    for leave in leaves:
        if leave.status != APPROVED:
            continue
        if not period.overlaps(leave.start_date, leave.end_date):
            continue
        if leave.is_paid:
            paid_leave += to_decimal(leave.total_days)
        else:
            unpaid_leave += to_decimal(leave.total_days)

    return AttendanceSummary(
        present_days=present,
        absent_days=absent,
        half_days=half,
        paid_leave_days=paid_leave,
        unpaid_leave_days=unpaid_leave,
    )


def split_outcomes(
    outcomes: Sequence[ComputationOutcome],
) -> tuple[list[PayslipDraft], list[PayslipSkip]]:
    """Separate computed drafts from skips."""
    drafts = [o for o in outcomes if isinstance(o, PayslipDraft)]
    skips = [o for o in outcomes if isinstance(o, PayslipSkip)]
    return drafts, skips
