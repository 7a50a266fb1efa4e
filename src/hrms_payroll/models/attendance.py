"""Attendance and leave models (read-only inputs to payroll)."""

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
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrms_payroll.models.base import Base, TimestampMixin, UpdatedAtMixin

if TYPE_CHECKING:
    from hrms_payroll.models.employee import Employee


class Attendance(Base, TimestampMixin, UpdatedAtMixin):
    """One attendance record per employee per day."""

    __tablename__ = "attendance"

    attendance_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    attendance_date: Mapped[date] = mapped_column(Date, nullable=False)
    check_in_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    check_out_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    working_hours: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0"))
    status: Mapped[str] = mapped_column(String, nullable=False, default="absent")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("user_id", "attendance_date", name="attendance_user_date_unique"),
        CheckConstraint(
            "status IN ('present', 'absent', 'half-day', 'leave', 'holiday')",
            name="attendance_status_check",
        ),
    )

    employee: Mapped[Employee] = relationship()


class LeaveType(Base, TimestampMixin):
    """Leave type; decides whether approved days are paid."""

    __tablename__ = "leave_type"

    leave_type_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    code: Mapped[str] = mapped_column(String(16), nullable=False, unique=True)
    max_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class LeaveApplication(Base, TimestampMixin, UpdatedAtMixin):
    """Leave request.

    The paid/unpaid split is not stored here; it is read from the leave
    type at computation time.
    """

    __tablename__ = "leave_application"

    leave_application_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    leave_type_id: Mapped[UUID] = mapped_column(
        ForeignKey("leave_type.leave_type_id"),
        nullable=False,
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_days: Mapped[Decimal] = mapped_column(Numeric(5, 1), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'cancelled')",
            name="leave_application_status_check",
        ),
        CheckConstraint("end_date >= start_date", name="leave_application_dates_check"),
    )

    leave_type: Mapped[LeaveType] = relationship()
