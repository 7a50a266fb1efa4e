"""ORM models."""

from hrms_payroll.models.base import Base, TimestampMixin, UpdatedAtMixin
from hrms_payroll.models.employee import Employee
from hrms_payroll.models.attendance import Attendance, LeaveApplication, LeaveType
from hrms_payroll.models.payroll import PayrollRun, Payslip, SalaryStructure
from hrms_payroll.models.system import AuditEvent, SystemSetting

__all__ = [
    "Base",
    "TimestampMixin",
    "UpdatedAtMixin",
    "Employee",
    "Attendance",
    "LeaveApplication",
    "LeaveType",
    "PayrollRun",
    "Payslip",
    "SalaryStructure",
    "AuditEvent",
    "SystemSetting",
]
