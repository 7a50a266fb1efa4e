"""Payslip persistence with the validation lock.

Every mutator refuses a payslip whose status is done, or whose run has
been validated (paid), with LockedError. The ORM before_update hook on
Payslip backs this up for writes that bypass the store.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hrms_payroll.calculators.types import PayslipDraft, money, to_decimal
from hrms_payroll.exceptions import (
    InvalidStateError,
    LockedError,
    NotFoundError,
    PayrollValidationError,
)
from hrms_payroll.models import PayrollRun, Payslip
from hrms_payroll.services.state_machine import (
    PayrollRunStateMachine,
    PayslipStateMachine,
    PayslipStatus,
)

MUTABLE_FIELDS = {
    "basic_salary",
    "hra",
    "transport_allowance",
    "medical_allowance",
    "other_allowances",
    "gross_salary",
    "pf_employee",
    "pf_employer",
    "professional_tax",
    "other_deductions",
    "total_deductions",
    "net_salary",
    "working_days",
    "present_days",
    "leave_days",
    "absent_days",
}

MONEY_FIELDS = {"gross_salary", "total_deductions", "net_salary"}


@dataclass(frozen=True)
class PayslipFilter:
    """Reporting filter; unset fields do not constrain."""

    payroll_run_id: UUID | None = None
    user_id: UUID | None = None
    month: int | None = None
    year: int | None = None
    status: str | None = None


class PayslipStore:
    """Lookup and guarded mutation of payslips."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # === Lookup ===

    async def get(self, payslip_id: UUID) -> Payslip:
        """Payslip by id with its run and employee loaded."""
        result = await self.session.execute(
            select(Payslip)
            .where(Payslip.payslip_id == payslip_id)
            .options(selectinload(Payslip.payroll_run), selectinload(Payslip.employee))
            .execution_options(populate_existing=True)
        )
        payslip = result.scalar_one_or_none()
        if payslip is None:
            raise NotFoundError("Payslip", payslip_id)
        return payslip

    async def get_for_run_and_user(self, payroll_run_id: UUID, user_id: UUID) -> Payslip | None:
        result = await self.session.execute(
            select(Payslip).where(
                Payslip.payroll_run_id == payroll_run_id,
                Payslip.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def find(self, filters: PayslipFilter | None = None) -> list[Payslip]:
        """Payslips matching the filter, newest period first."""
        filters = filters or PayslipFilter()
        query = (
            select(Payslip)
            .join(PayrollRun, Payslip.payroll_run_id == PayrollRun.payroll_run_id)
            .options(selectinload(Payslip.payroll_run), selectinload(Payslip.employee))
        )

        if filters.payroll_run_id:
            query = query.where(Payslip.payroll_run_id == filters.payroll_run_id)
        if filters.user_id:
            query = query.where(Payslip.user_id == filters.user_id)
        if filters.month:
            query = query.where(PayrollRun.month == filters.month)
        if filters.year:
            query = query.where(PayrollRun.year == filters.year)
        if filters.status:
            query = query.where(Payslip.status == filters.status)

        query = query.order_by(
            PayrollRun.year.desc(), PayrollRun.month.desc(), Payslip.created_at
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def user_ids_for_run(self, payroll_run_id: UUID) -> set[UUID]:
        result = await self.session.execute(
            select(Payslip.user_id).where(Payslip.payroll_run_id == payroll_run_id)
        )
        return set(result.scalars().all())

    async def totals_for_run(self, payroll_run_id: UUID) -> tuple[int, Decimal]:
        """(payslip count, sum of net salary) for a run."""
        result = await self.session.execute(
            select(func.count(Payslip.payslip_id), func.coalesce(func.sum(Payslip.net_salary), 0))
            .where(Payslip.payroll_run_id == payroll_run_id)
        )
        count, total = result.one()
        return int(count), money(to_decimal(total))

    # === Mutation ===

    async def create(self, draft: PayslipDraft) -> Payslip:
        """Persist a computed payslip into a processing run.

        One per (run, employee), never overwritten.
        """
        if draft.net_salary != draft.gross_salary - draft.total_deductions:
            raise PayrollValidationError("net_salary must equal gross_salary - total_deductions")

        run = await self.session.get(PayrollRun, draft.payroll_run_id, populate_existing=True)
        if run is None:
            raise NotFoundError("PayrollRun", draft.payroll_run_id)
        if PayrollRunStateMachine.are_payslips_locked(run.status):
            raise LockedError("PayrollRun", run.payroll_run_id)
        if not PayrollRunStateMachine.can_write_payslips(run.status):
            raise InvalidStateError(
                f"Payslips can only be added to a processing run; run {run.payroll_run_id} is {run.status}"
            )

        existing = await self.get_for_run_and_user(draft.payroll_run_id, draft.user_id)
        if existing is not None:
            raise InvalidStateError(
                f"Payslip for employee {draft.user_id} already exists in run {draft.payroll_run_id}"
            )

        payslip = Payslip(status=PayslipStatus.PENDING.value, **draft.to_row())
        self.session.add(payslip)
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise InvalidStateError(
                f"Payslip for employee {draft.user_id} already exists in run {draft.payroll_run_id}"
            ) from e
        return payslip

    async def update(self, payslip_id: UUID, **fields: Any) -> Payslip:
        """Change stored values of a pending payslip."""
        unknown = set(fields) - MUTABLE_FIELDS
        if unknown:
            raise PayrollValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

        payslip = await self.get(payslip_id)
        self._ensure_mutable(payslip)

        for name, value in fields.items():
            setattr(payslip, name, value)

        if MONEY_FIELDS & set(fields):
            gross = to_decimal(payslip.gross_salary)
            deductions = to_decimal(payslip.total_deductions)
            if to_decimal(payslip.net_salary) != gross - deductions:
                raise PayrollValidationError(
                    "net_salary must equal gross_salary - total_deductions"
                )

        await self.session.flush()
        return payslip

    async def delete(self, payslip_id: UUID) -> None:
        payslip = await self.get(payslip_id)
        self._ensure_mutable(payslip)
        await self.session.delete(payslip)
        await self.session.flush()

    async def mark_done(self, payslip: Payslip) -> bool:
        """Lock one payslip. Returns False if it was already done."""
        if PayslipStateMachine.is_locked(payslip.status):
            return False
        payslip.status = PayslipStatus.DONE.value
        payslip.validated_at = datetime.now(timezone.utc)
        await self.session.flush()
        return True

    async def mark_run_done(self, payroll_run_id: UUID) -> int:
        """Lock every pending payslip of a run. Returns count locked."""
        result = await self.session.execute(
            update(Payslip)
            .where(
                Payslip.payroll_run_id == payroll_run_id,
                Payslip.status == PayslipStatus.PENDING.value,
            )
            .values(status=PayslipStatus.DONE.value, validated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    def _ensure_mutable(self, payslip: Payslip) -> None:
        if PayslipStateMachine.is_locked(payslip.status):
            raise LockedError("Payslip", payslip.payslip_id)
        run = payslip.payroll_run
        if run is not None and PayrollRunStateMachine.are_payslips_locked(run.status):
            raise LockedError("Payslip", payslip.payslip_id)
