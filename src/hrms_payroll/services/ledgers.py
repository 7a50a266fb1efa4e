"""Read-only queries over employees, attendance, and leave."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms_payroll.calculators.types import LeaveEntry
from hrms_payroll.models import Attendance, Employee, LeaveApplication, LeaveType


class EmployeeDirectory:
    """Employees eligible for payroll."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_active(self) -> list[Employee]:
        """Active employees, queried fresh for each run."""
        result = await self.session.execute(
            select(Employee)
            .where(Employee.is_active.is_(True))
            .order_by(Employee.employee_code)
        )
        return list(result.scalars().all())

    async def get(self, employee_id: UUID) -> Employee | None:
        return await self.session.get(Employee, employee_id)


class AttendanceLedger:
    """Per-employee, per-day attendance records."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_for_user_in_range(
        self, user_id: UUID, start: date, end: date
    ) -> list[Attendance]:
        """Attendance for user with start <= date <= end."""
        result = await self.session.execute(
            select(Attendance)
            .where(
                Attendance.user_id == user_id,
                Attendance.attendance_date >= start,
                Attendance.attendance_date <= end,
            )
            .order_by(Attendance.attendance_date)
        )
        return list(result.scalars().all())


class LeaveLedger:
    """Leave applications resolved against their leave type."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_approved_for_user_in_range(
        self, user_id: UUID, start: date, end: date
    ) -> list[LeaveEntry]:
        """Approved applications overlapping [start, end], with is_paid resolved."""
        result = await self.session.execute(
            select(LeaveApplication, LeaveType.is_paid)
            .join(LeaveType, LeaveApplication.leave_type_id == LeaveType.leave_type_id)
            .where(
                LeaveApplication.user_id == user_id,
                LeaveApplication.status == "approved",
                LeaveApplication.start_date <= end,
                LeaveApplication.end_date >= start,
            )
            .order_by(LeaveApplication.start_date)
        )
        return [
            LeaveEntry(
                start_date=app.start_date,
                end_date=app.end_date,
                total_days=app.total_days,
                is_paid=bool(is_paid),
                status=app.status,
                leave_application_id=app.leave_application_id,
            )
            for app, is_paid in result.all()
        ]
