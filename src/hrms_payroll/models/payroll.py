"""Salary structure, payroll run, and payslip models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    event,
    inspect,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrms_payroll.exceptions import LockedError
from hrms_payroll.models.base import Base, TimestampMixin, UpdatedAtMixin

if TYPE_CHECKING:
    from hrms_payroll.models.employee import Employee

MONEY = Numeric(12, 2)
ZERO = Decimal("0")


# ===== Salary Structures =====


class SalaryStructure(Base, TimestampMixin):
    """Versioned compensation definition for one employee.

    At most one structure per employee has is_active = true; creating a
    new one deactivates the rest (see SalaryStructureService).
    """

    __tablename__ = "salary_structure"

    salary_structure_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    basic_salary: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    hra: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=ZERO)
    transport_allowance: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=ZERO)
    medical_allowance: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=ZERO)
    other_allowances: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=ZERO)
    pf_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("12"))
    professional_tax: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=ZERO)
    other_deductions: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=ZERO)
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_to: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("basic_salary >= 0", name="salary_structure_basic_nonneg"),
        CheckConstraint(
            "effective_to IS NULL OR effective_to >= effective_from",
            name="salary_structure_dates_check",
        ),
    )

    employee: Mapped[Employee] = relationship()

    @property
    def full_gross(self) -> Decimal:
        """Unprorated monthly gross: sum of the five components."""
        return (
            self.basic_salary
            + self.hra
            + self.transport_allowance
            + self.medical_allowance
            + self.other_allowances
        )

    def structure_pf_amount(self) -> Decimal:
        """PF at the structure's own percentage.

        Batch processing does not use this; it applies the system-wide
        percentage instead (PayslipCalculator.settings_pf_amount).
        """
        return self.basic_salary * self.pf_percentage / 100


# ===== Payroll Runs =====


class PayrollRun(Base, TimestampMixin, UpdatedAtMixin):
    """One monthly payroll cycle."""

    __tablename__ = "payroll_run"

    payroll_run_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")
    created_by: Mapped[UUID | None] = mapped_column(nullable=True)
    processed_by: Mapped[UUID | None] = mapped_column(nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    validated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    total_employees: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=ZERO)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("month", "year", name="payroll_run_period_unique"),
        CheckConstraint("month BETWEEN 1 AND 12", name="payroll_run_month_check"),
        CheckConstraint(
            "status IN ('draft', 'processing', 'completed', 'paid')",
            name="payroll_run_status_check",
        ),
    )

    payslips: Mapped[list[Payslip]] = relationship(back_populates="payroll_run")

    @property
    def period_label(self) -> str:
        return f"{self.year}-{self.month:02d}"


# ===== Payslips =====


class Payslip(Base, TimestampMixin, UpdatedAtMixin):
    """Per-employee snapshot for a run. Immutable once status = done."""

    __tablename__ = "payslip"

    payslip_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_run_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_run.payroll_run_id", ondelete="RESTRICT"),
        nullable=False,
    )
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id"),
        nullable=False,
    )

    # Compensation snapshot
    basic_salary: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    hra: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=ZERO)
    transport_allowance: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=ZERO)
    medical_allowance: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=ZERO)
    other_allowances: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=ZERO)
    gross_salary: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    # Deductions
    pf_employee: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=ZERO)
    pf_employer: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=ZERO)
    professional_tax: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=ZERO)
    other_deductions: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=ZERO)
    total_deductions: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=ZERO)
    net_salary: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    # Attendance summary
    working_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    present_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    leave_days: Mapped[Decimal] = mapped_column(Numeric(5, 1), nullable=False, default=ZERO)
    absent_days: Mapped[Decimal] = mapped_column(Numeric(5, 1), nullable=False, default=ZERO)

    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    validated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("payroll_run_id", "user_id", name="payslip_one_per_employee"),
        CheckConstraint("status IN ('pending', 'done')", name="payslip_status_check"),
    )

    payroll_run: Mapped[PayrollRun] = relationship(back_populates="payslips")
    employee: Mapped[Employee] = relationship()

    @property
    def full_gross(self) -> Decimal:
        return (
            self.basic_salary
            + self.hra
            + self.transport_allowance
            + self.medical_allowance
            + self.other_allowances
        )


def _stored_status(target: Payslip) -> str | None:
    """Status as last loaded from the database (before pending changes)."""
    history = inspect(target).attrs.status.history
    if history.deleted:
        return history.deleted[0]
    if history.unchanged:
        return history.unchanged[0]
    return None


@event.listens_for(Payslip, "before_update")
def _reject_update_of_done_payslip(mapper, connection, target: Payslip) -> None:
    if _stored_status(target) == "done":
        raise LockedError("Payslip", target.payslip_id)


@event.listens_for(Payslip, "before_delete")
def _reject_delete_of_done_payslip(mapper, connection, target: Payslip) -> None:
    if _stored_status(target) == "done":
        raise LockedError("Payslip", target.payslip_id)
