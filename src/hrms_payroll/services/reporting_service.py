"""Read side of payslips: access-checked lookup, explanation, CSV export."""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from hrms_payroll.calculators.explainer import (
    SalaryComputation,
    WorkedDays,
    build_salary_computation,
    build_worked_days,
)
from hrms_payroll.calculators.types import PayPeriod
from hrms_payroll.config import get_settings
from hrms_payroll.models import Payslip
from hrms_payroll.services.access import Actor, ensure_can_view, ensure_elevated
from hrms_payroll.services.ledgers import AttendanceLedger, LeaveLedger
from hrms_payroll.services.payslip_store import PayslipFilter, PayslipStore

CSV_COLUMNS = [
    "Employee Code",
    "Employee Name",
    "Period",
    "Basic Salary",
    "HRA",
    "Transport Allowance",
    "Medical Allowance",
    "Other Allowances",
    "Gross Salary",
    "PF Employee",
    "PF Employer",
    "Professional Tax",
    "Other Deductions",
    "Total Deductions",
    "Net Salary",
    "Working Days",
    "Present Days",
    "Leave Days",
    "Absent Days",
    "Status",
]


@dataclass(frozen=True)
class PayslipComputation:
    """Explanation of how a stored payslip adds up."""

    payroll_run: dict[str, Any]
    worked_days: WorkedDays
    salary_computation: SalaryComputation

    def to_dict(self) -> dict[str, Any]:
        return {
            "payroll_run": self.payroll_run,
            "worked_days": self.worked_days.to_dict(),
            "salary_computation": self.salary_computation.to_dict(),
        }


class PayslipReportingService:
    """Payslip reads for employees and payroll staff."""

    def __init__(self, session: AsyncSession, elevated_roles: Iterable[str] | None = None):
        self.session = session
        self.elevated_roles = tuple(elevated_roles or get_settings().elevated_roles)
        self.store = PayslipStore(session)

    async def get_payslip(self, payslip_id: UUID, actor: Actor) -> Payslip:
        payslip = await self.store.get(payslip_id)
        ensure_can_view(actor, payslip.user_id, self.elevated_roles)
        return payslip

    async def list_payslips(self, actor: Actor, filters: PayslipFilter | None = None) -> list[Payslip]:
        """Any employee's payslips; elevated roles only."""
        ensure_elevated(actor, self.elevated_roles)
        return await self.store.find(filters)

    async def list_my_payslips(
        self, actor: Actor, month: int | None = None, year: int | None = None
    ) -> list[Payslip]:
        if actor.user_id is None:
            return []
        return await self.store.find(PayslipFilter(user_id=actor.user_id, month=month, year=year))

    async def explain(self, payslip_id: UUID, actor: Actor) -> PayslipComputation:
        """Worked days and salary computation for one payslip.

        Amounts come from the stored snapshot; only the worked-days counts
        are re-derived from attendance and leave.
        """
        payslip = await self.get_payslip(payslip_id, actor)
        run = payslip.payroll_run
        period = PayPeriod(month=run.month, year=run.year)

        attendance = await AttendanceLedger(self.session).list_for_user_in_range(
            payslip.user_id, period.start, period.end
        )
        leaves = await LeaveLedger(self.session).list_approved_for_user_in_range(
            payslip.user_id, period.start, period.end
        )

        return PayslipComputation(
            payroll_run={
                "payroll_run_id": str(run.payroll_run_id),
                "month": run.month,
                "year": run.year,
                "status": run.status,
                "period": period.label,
            },
            worked_days=build_worked_days(payslip, period, attendance, leaves),
            salary_computation=build_salary_computation(payslip),
        )

    async def export_payslips_csv(self, filters: PayslipFilter | None = None) -> str:
        """Export payslips to CSV format.

        Returns CSV content as a string. Callers check access.
        """
        payslips = await self.store.find(filters)

        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(CSV_COLUMNS)

        for p in payslips:
            employee = p.employee
            writer.writerow([
                employee.employee_code if employee else "",
                employee.full_name if employee else "",
                p.payroll_run.period_label,
                str(p.basic_salary),
                str(p.hra),
                str(p.transport_allowance),
                str(p.medical_allowance),
                str(p.other_allowances),
                str(p.gross_salary),
                str(p.pf_employee),
                str(p.pf_employer),
                str(p.professional_tax),
                str(p.other_deductions),
                str(p.total_deductions),
                str(p.net_salary),
                p.working_days,
                p.present_days,
                str(p.leave_days),
                str(p.absent_days),
                p.status,
            ])

        return output.getvalue()
