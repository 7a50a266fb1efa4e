"""Payslip calculation and explanation."""

from hrms_payroll.calculators.payslip_calculator import PayslipCalculator, summarize_attendance
from hrms_payroll.calculators.explainer import build_salary_computation, build_worked_days
from hrms_payroll.calculators.types import (
    LeaveEntry,
    PayPeriod,
    PayrollSettings,
    PayslipDraft,
    PayslipSkip,
    SkipReason,
)

__all__ = [
    "PayslipCalculator",
    "summarize_attendance",
    "build_salary_computation",
    "build_worked_days",
    "LeaveEntry",
    "PayPeriod",
    "PayrollSettings",
    "PayslipDraft",
    "PayslipSkip",
    "SkipReason",
]
