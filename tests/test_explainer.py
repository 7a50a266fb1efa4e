"""Tests for the payslip computation breakdown."""

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal

from hrms_payroll.calculators.explainer import (
    build_salary_computation,
    build_worked_days,
    display_daily_rate,
    split_other_allowances,
)
from hrms_payroll.calculators.types import LeaveEntry, PayPeriod

APRIL = PayPeriod(month=4, year=2025)


@dataclass
class StoredPayslip:
    basic_salary: Decimal = Decimal("50000.00")
    hra: Decimal = Decimal("20000.00")
    transport_allowance: Decimal = Decimal("5000.00")
    medical_allowance: Decimal = Decimal("2500.00")
    other_allowances: Decimal = Decimal("10000.00")
    gross_salary: Decimal = Decimal("81666.67")
    pf_employee: Decimal = Decimal("6000.00")
    professional_tax: Decimal = Decimal("200.00")
    other_deductions: Decimal = Decimal("0.00")
    net_salary: Decimal = Decimal("75466.67")
    working_days: int = 30


@dataclass
class Day:
    attendance_date: date
    status: str


def lines_by_name(lines):
    return {line.rule_name: line for line in lines}


class TestSalaryComputation:
    """Gross and deduction lines rebuilt from the stored snapshot."""

    def test_gross_lines_carry_share_of_full_gross(self):
        computation = build_salary_computation(StoredPayslip())
        gross = lines_by_name(computation.gross)

        assert gross["Basic Salary"].amount == Decimal("50000.00")
        assert gross["Basic Salary"].rate_percent == Decimal("57.14")
        assert gross["House Rent Allowance"].rate_percent == Decimal("22.86")

    def test_other_allowances_split_sixty_twenty_twenty(self):
        gross = lines_by_name(build_salary_computation(StoredPayslip()).gross)

        assert gross["Standard Allowance"].amount == Decimal("6000.00")
        assert gross["Performance Bonus"].amount == Decimal("2000.00")
        assert gross["Leave Travel Allowance"].amount == Decimal("2000.00")

    def test_unpaid_days_line_reconciles_to_stored_gross(self):
        computation = build_salary_computation(StoredPayslip())
        gross = lines_by_name(computation.gross)

        assert gross["Unpaid Days Adjustment"].amount == Decimal("-5833.33")
        assert computation.gross_amount == Decimal("81666.67")

    def test_no_adjustment_line_for_full_month(self):
        payslip = StoredPayslip(gross_salary=Decimal("87500.00"), net_salary=Decimal("81300.00"))
        names = [line.rule_name for line in build_salary_computation(payslip).gross]

        assert "Unpaid Days Adjustment" not in names

    def test_deductions_are_negative(self):
        computation = build_salary_computation(StoredPayslip())
        deductions = lines_by_name(computation.deductions)

        assert deductions["Provident Fund"].amount == Decimal("-6000.00")
        assert deductions["Provident Fund"].rate_percent == Decimal("12.00")
        assert deductions["Professional Tax"].amount == Decimal("-200.00")
        assert computation.total_deductions == Decimal("6200.00")

    def test_net_amount_is_the_stored_net(self):
        computation = build_salary_computation(StoredPayslip())

        assert computation.net_amount == Decimal("75466.67")
        assert computation.gross_amount - computation.total_deductions == computation.net_amount

    def test_to_dict_shape(self):
        data = build_salary_computation(StoredPayslip()).to_dict()

        assert set(data) == {"gross", "deductions", "gross_amount", "total_deductions", "net_amount"}
        assert set(data["gross"][0]) == {"rule_name", "rate_percent", "amount"}


class TestOtherAllowanceSplit:
    def test_parts_add_back_up(self):
        parts = split_other_allowances(Decimal("10000.01"))

        assert [name for name, _ in parts] == [
            "Standard Allowance",
            "Performance Bonus",
            "Leave Travel Allowance",
        ]
        assert sum(amount for _, amount in parts) == Decimal("10000.01")

    def test_zero(self):
        assert all(amount == 0 for _, amount in split_other_allowances(Decimal("0")))


class TestWorkedDays:
    def test_display_rate_is_basic_over_working_days(self):
        assert display_daily_rate(Decimal("50000"), 30).quantize(Decimal("0.01")) == Decimal("1666.67")
        assert display_daily_rate(Decimal("50000"), 0) == Decimal("0")

    def test_breakdown(self):
        attendance = [Day(APRIL.start + timedelta(days=i), "present") for i in range(20)]
        leaves = [LeaveEntry(date(2025, 4, 24), date(2025, 4, 25), Decimal("2"), is_paid=True)]

        worked = build_worked_days(StoredPayslip(), APRIL, attendance, leaves)
        lines = {line.description: line for line in worked.breakdown}

        assert worked.daily_rate == Decimal("1666.67")
        assert lines["Attendance"].days == Decimal("20")
        assert lines["Attendance"].amount == Decimal("33333.33")
        assert lines["Paid Time Off"].amount == Decimal("3333.33")
        assert worked.total_days == Decimal("22")
        assert worked.total_amount == Decimal("36666.66")

    def test_half_days_shown_at_zero(self):
        attendance = [Day(date(2025, 4, 1), "half-day"), Day(date(2025, 4, 2), "half-day")]

        worked = build_worked_days(StoredPayslip(), APRIL, attendance, [])
        lines = {line.description: line for line in worked.breakdown}

        assert lines["Half Day (not counted)"].days == Decimal("2")
        assert lines["Half Day (not counted)"].amount == Decimal("0")
