"""Row builders shared by the database-backed tests."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from hrms_payroll.models import (
    Attendance,
    Employee,
    LeaveApplication,
    LeaveType,
    SalaryStructure,
)


async def add_employee(
    session: AsyncSession,
    code: str,
    first_name: str = "Test",
    last_name: str = "Employee",
    *,
    email: str | None = None,
    role_name: str = "employee",
    is_active: bool = True,
) -> Employee:
    employee = Employee(
        employee_id=uuid4(),
        employee_code=code,
        first_name=first_name,
        last_name=last_name,
        email=email if email is not None else f"{code.lower()}@example.com",
        role_name=role_name,
        is_active=is_active,
    )
    session.add(employee)
    await session.flush()
    return employee


async def add_structure(
    session: AsyncSession,
    user_id: UUID,
    basic: str = "50000",
    *,
    hra: str = "20000",
    transport: str = "5000",
    medical: str = "2500",
    other: str = "10000",
    professional_tax: str = "200",
    other_deductions: str = "0",
    effective_from: date = date(2024, 1, 1),
    is_active: bool = True,
) -> SalaryStructure:
    structure = SalaryStructure(
        user_id=user_id,
        basic_salary=Decimal(basic),
        hra=Decimal(hra),
        transport_allowance=Decimal(transport),
        medical_allowance=Decimal(medical),
        other_allowances=Decimal(other),
        pf_percentage=Decimal("12"),
        professional_tax=Decimal(professional_tax),
        other_deductions=Decimal(other_deductions),
        effective_from=effective_from,
        is_active=is_active,
    )
    session.add(structure)
    await session.flush()
    return structure


async def add_attendance(
    session: AsyncSession, user_id: UUID, day: date, status: str
) -> Attendance:
    record = Attendance(user_id=user_id, attendance_date=day, status=status)
    session.add(record)
    await session.flush()
    return record


async def add_leave_type(
    session: AsyncSession, code: str, *, is_paid: bool
) -> LeaveType:
    leave_type = LeaveType(name=f"{code} leave", code=code, is_paid=is_paid)
    session.add(leave_type)
    await session.flush()
    return leave_type


async def add_leave(
    session: AsyncSession,
    user_id: UUID,
    leave_type: LeaveType,
    start: date,
    end: date,
    days: str,
    status: str = "approved",
) -> LeaveApplication:
    application = LeaveApplication(
        user_id=user_id,
        leave_type_id=leave_type.leave_type_id,
        start_date=start,
        end_date=end,
        total_days=Decimal(days),
        status=status,
    )
    session.add(application)
    await session.flush()
    return application
