"""Payroll run lifecycle: create, process, resume, validate.

Each public operation ends in a commit on the service's session. Audit
records and notifications go out only after the commit that made the
state change durable.

Processing claims the run (draft -> processing) in its own commit before
any payslip is computed, so a crash mid-run leaves it in processing where
find_stuck_runs can see it and resume_run can finish it.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hrms_payroll.calculators.payslip_calculator import PayslipCalculator, split_outcomes
from hrms_payroll.calculators.types import (
    ComputationOutcome,
    PayPeriod,
    PayslipSkip,
    SkipReason,
)
from hrms_payroll.config import get_settings
from hrms_payroll.events.emitter import AuditEmitter
from hrms_payroll.events.types import AuditAction, AuditRecord, snapshot
from hrms_payroll.exceptions import (
    DuplicateRunError,
    InvalidStateError,
    NotFoundError,
    PayrollValidationError,
)
from hrms_payroll.models import Employee, PayrollRun, Payslip
from hrms_payroll.services.ledgers import AttendanceLedger, EmployeeDirectory, LeaveLedger
from hrms_payroll.services.notification_service import NotificationDispatcher, PayslipNotice
from hrms_payroll.services.payslip_store import PayslipStore
from hrms_payroll.services.salary_structure_service import SalaryStructureService
from hrms_payroll.services.settings_provider import SettingsProvider
from hrms_payroll.services.state_machine import (
    InvalidTransitionError,
    PayrollRunStateMachine,
    PayrollRunStatus,
)

logger = logging.getLogger(__name__)

RUN_AUDIT_FIELDS = (
    "month",
    "year",
    "status",
    "total_employees",
    "total_amount",
    "processed_by",
    "processed_at",
    "validated_at",
    "notes",
)
PAYSLIP_AUDIT_FIELDS = ("status", "net_salary", "validated_at")


@dataclass
class RunProcessingReport:
    """Outcome of processing (or resuming) a run."""

    run: PayrollRun
    payslips: list[Payslip] = field(default_factory=list)
    skipped: list[PayslipSkip] = field(default_factory=list)
    employees: dict[UUID, Employee] = field(default_factory=dict, repr=False)

    @property
    def processed_count(self) -> int:
        return len(self.payslips)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)


@dataclass(frozen=True)
class RunSummary:
    """Who is and is not covered by a run, as currently stored."""

    payroll_run_id: UUID
    status: str
    total_employees: int
    total_amount: Decimal
    processed_user_ids: list[UUID]
    missing: list[PayslipSkip]

    def to_dict(self) -> dict[str, Any]:
        return {
            "payroll_run_id": str(self.payroll_run_id),
            "status": self.status,
            "total_employees": self.total_employees,
            "total_amount": str(self.total_amount),
            "processed_user_ids": [str(u) for u in self.processed_user_ids],
            "missing": [
                {"user_id": str(s.user_id), "reason": s.reason.value, "detail": s.detail}
                for s in self.missing
            ],
        }


class PayrollRunService:
    """Owns the payroll run state machine and the batch computation."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        emitter: AuditEmitter | None = None,
        dispatcher: NotificationDispatcher | None = None,
        reader_factory: async_sessionmaker[AsyncSession] | None = None,
        max_concurrency: int | None = None,
        store_timeout: float | None = None,
    ):
        settings = get_settings()
        self.session = session
        self.emitter = emitter or AuditEmitter()
        self.dispatcher = dispatcher
        # Without a reader factory every employee is computed on self.session,
        # one at a time.
        self.reader_factory = reader_factory
        self.max_concurrency = max(1, max_concurrency or settings.max_concurrency)
        self.store_timeout = store_timeout or settings.store_timeout_seconds
        self.payslips = PayslipStore(session)

    # === Queries ===

    async def get_run(self, run_id: UUID) -> PayrollRun:
        run = await self.session.get(PayrollRun, run_id)
        if run is None:
            raise NotFoundError("PayrollRun", run_id)
        return run

    async def list_runs(
        self,
        month: int | None = None,
        year: int | None = None,
        status: str | None = None,
    ) -> list[PayrollRun]:
        query = select(PayrollRun)
        if month:
            query = query.where(PayrollRun.month == month)
        if year:
            query = query.where(PayrollRun.year == year)
        if status:
            query = query.where(PayrollRun.status == status)
        query = query.order_by(PayrollRun.year.desc(), PayrollRun.month.desc())
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def find_stuck_runs(self, older_than: timedelta = timedelta(minutes=30)) -> list[PayrollRun]:
        """Runs left in processing since before now - older_than."""
        cutoff = datetime.now(timezone.utc) - older_than
        result = await self.session.execute(
            select(PayrollRun)
            .where(
                PayrollRun.status == PayrollRunStatus.PROCESSING.value,
                PayrollRun.processed_at <= cutoff,
            )
            .order_by(PayrollRun.processed_at)
        )
        return list(result.scalars().all())

    async def run_summary(self, run_id: UUID) -> RunSummary:
        """Processed employees and active employees the run does not cover."""
        run = await self.get_run(run_id)
        processed = await self.payslips.user_ids_for_run(run_id)
        structures = SalaryStructureService(self.session)

        missing: list[PayslipSkip] = []
        for employee in await EmployeeDirectory(self.session).list_active():
            if employee.employee_id in processed:
                continue
            if await structures.active_for_user(employee.employee_id) is None:
                missing.append(PayslipSkip(
                    user_id=employee.employee_id,
                    reason=SkipReason.NO_SALARY_STRUCTURE,
                    detail="No active salary structure",
                ))
            else:
                missing.append(PayslipSkip(
                    user_id=employee.employee_id,
                    reason=SkipReason.NOT_PROCESSED,
                    detail="Active after the run was processed, or processing did not finish",
                ))

        return RunSummary(
            payroll_run_id=run.payroll_run_id,
            status=run.status,
            total_employees=run.total_employees,
            total_amount=run.total_amount,
            processed_user_ids=sorted(processed, key=str),
            missing=missing,
        )

    # === Lifecycle ===

    async def create_run(
        self,
        month: int,
        year: int,
        actor_id: UUID | None = None,
        notes: str | None = None,
    ) -> PayrollRun:
        """Create a draft run for (month, year); DuplicateRunError if one exists."""
        if not 1 <= month <= 12:
            raise PayrollValidationError(f"month must be between 1 and 12, got {month}")
        if year < 1900:
            raise PayrollValidationError(f"year out of range: {year}")

        existing = await self.session.execute(
            select(PayrollRun.payroll_run_id).where(
                PayrollRun.month == month,
                PayrollRun.year == year,
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise DuplicateRunError(month, year)

        run = PayrollRun(
            month=month,
            year=year,
            status=PayrollRunStatus.DRAFT.value,
            created_by=actor_id,
            total_employees=0,
            total_amount=Decimal("0"),
            notes=notes,
        )
        self.session.add(run)
        try:
            await self.session.commit()
        except IntegrityError as e:
            # Lost a race with a concurrent create for the same period
            await self.session.rollback()
            raise DuplicateRunError(month, year) from e

        logger.info("Payroll run %s created for %s", run.payroll_run_id, run.period_label)
        await self._audit(
            AuditAction.RUN_CREATED, run, actor_id, before=None,
            after=snapshot(run, RUN_AUDIT_FIELDS),
        )
        return run

    async def update_notes(
        self, run_id: UUID, notes: str | None, actor_id: UUID | None = None
    ) -> PayrollRun:
        run = await self.get_run(run_id)
        if not PayrollRunStateMachine.can_edit_notes(run.status):
            raise InvalidStateError(f"Notes of a {run.status} run cannot be changed")

        before = snapshot(run, RUN_AUDIT_FIELDS)
        run.notes = notes
        await self.session.commit()
        await self._audit(
            AuditAction.RUN_UPDATED, run, actor_id, before=before,
            after=snapshot(run, RUN_AUDIT_FIELDS),
        )
        return run

    async def process_run(self, run_id: UUID, actor_id: UUID | None = None) -> RunProcessingReport:
        """Compute and store a payslip for every active employee.

        Employees without an active salary structure, and employees whose
        attendance, leave or structure could not be read, are skipped; the
        run still completes and the skips are returned in the report.
        """
        run = await self.get_run(run_id)
        if not PayrollRunStateMachine.can_process(run.status):
            raise InvalidTransitionError(
                run.status,
                PayrollRunStatus.PROCESSING.value,
                "only draft runs can be processed",
            )

        before = snapshot(run, RUN_AUDIT_FIELDS)
        claimed = await self.session.execute(
            update(PayrollRun)
            .where(
                PayrollRun.payroll_run_id == run_id,
                PayrollRun.status == PayrollRunStatus.DRAFT.value,
            )
            .values(
                status=PayrollRunStatus.PROCESSING.value,
                processed_by=actor_id,
                processed_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session="fetch")
        )
        if claimed.rowcount == 0:
            await self.session.rollback()
            raise InvalidStateError(f"Payroll run {run_id} is already being processed")
        await self.session.commit()
        await self.session.refresh(run)

        logger.info("Processing payroll run %s (%s)", run_id, run.period_label)
        report = await self._process_employees(run)
        await self._audit(
            AuditAction.RUN_PROCESSED, run, actor_id, before=before,
            after=snapshot(run, RUN_AUDIT_FIELDS),
        )
        self._notify(report)
        return report

    async def resume_run(self, run_id: UUID, actor_id: UUID | None = None) -> RunProcessingReport:
        """Finish a run stuck in processing.

        Employees that already hold a payslip for the run are skipped with
        ALREADY_PROCESSED; totals are re-summed over every payslip of the run.
        """
        run = await self.get_run(run_id)
        if not PayrollRunStateMachine.can_resume(run.status):
            raise InvalidStateError(
                f"Only processing runs can be resumed; run {run_id} is {run.status}"
            )

        logger.warning("Resuming payroll run %s (%s)", run_id, run.period_label)
        before = snapshot(run, RUN_AUDIT_FIELDS)
        report = await self._process_employees(run)
        await self._audit(
            AuditAction.RUN_RESUMED, run, actor_id, before=before,
            after=snapshot(run, RUN_AUDIT_FIELDS),
        )
        self._notify(report)
        return report

    async def validate_run(self, run_id: UUID, actor_id: UUID | None = None) -> PayrollRun:
        """completed -> paid, locking every payslip of the run."""
        run = await self.get_run(run_id)
        PayrollRunStateMachine.validate_transition(run.status, PayrollRunStatus.PAID.value)

        before = snapshot(run, RUN_AUDIT_FIELDS)
        result = await self.session.execute(
            update(PayrollRun)
            .where(
                PayrollRun.payroll_run_id == run_id,
                PayrollRun.status == PayrollRunStatus.COMPLETED.value,
            )
            .values(
                status=PayrollRunStatus.PAID.value,
                validated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount == 0:
            await self.session.rollback()
            raise InvalidStateError(f"Payroll run {run_id} changed state during validation")

        locked = await self.payslips.mark_run_done(run_id)
        await self.session.commit()
        await self.session.refresh(run)

        logger.info("Payroll run %s validated, %d payslip(s) locked", run_id, locked)
        await self._audit(
            AuditAction.RUN_VALIDATED, run, actor_id, before=before,
            after=snapshot(run, RUN_AUDIT_FIELDS),
        )
        return run

    async def validate_payslip(self, payslip_id: UUID, actor_id: UUID | None = None) -> Payslip:
        """Lock a single payslip. Validating a done payslip is a no-op."""
        payslip = await self.payslips.get(payslip_id)
        before = snapshot(payslip, PAYSLIP_AUDIT_FIELDS)

        changed = await self.payslips.mark_done(payslip)
        if not changed:
            return payslip
        await self.session.commit()

        logger.info("Payslip %s validated", payslip_id)
        await self.emitter.emit(AuditRecord(
            action=AuditAction.PAYSLIP_VALIDATED,
            entity_type="payslip",
            entity_id=payslip.payslip_id,
            actor_id=actor_id,
            before=before,
            after=snapshot(payslip, PAYSLIP_AUDIT_FIELDS),
        ))
        return payslip

    # === Batch computation ===

    async def _process_employees(self, run: PayrollRun) -> RunProcessingReport:
        run_id = run.payroll_run_id
        period = PayPeriod(month=run.month, year=run.year)
        payroll_settings = await SettingsProvider(self.session).get_payroll_settings()
        calculator = PayslipCalculator(payroll_settings)
        employees = await EmployeeDirectory(self.session).list_active()
        already = await self.payslips.user_ids_for_run(run.payroll_run_id)

        pending = [e for e in employees if e.employee_id not in already]
        outcomes: list[ComputationOutcome] = [
            PayslipSkip(
                user_id=e.employee_id,
                reason=SkipReason.ALREADY_PROCESSED,
                detail="Payslip already exists for this run",
            )
            for e in employees
            if e.employee_id in already
        ]

        try:
            outcomes.extend(await self._compute_all(run, period, calculator, pending))

            drafts, skips = split_outcomes(outcomes)
            created: list[Payslip] = []
            for draft in drafts:
                if draft.net_salary < 0:
                    logger.warning(
                        "Negative net salary %s for employee %s in run %s",
                        draft.net_salary,
                        draft.user_id,
                        run.payroll_run_id,
                    )
                created.append(await self.payslips.create(draft))

            count, total = await self.payslips.totals_for_run(run.payroll_run_id)
            PayrollRunStateMachine.validate_transition(
                run.status, PayrollRunStatus.COMPLETED.value
            )
            run.total_employees = count
            run.total_amount = total
            run.status = PayrollRunStatus.COMPLETED.value
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            logger.error("Payroll run %s left in processing after a failure", run_id)
            raise

        for skip in skips:
            logger.info(
                "Skipped employee %s in run %s: %s",
                skip.user_id,
                run.payroll_run_id,
                skip.reason.value,
            )
        logger.info(
            "Payroll run %s completed: %d payslip(s), total %s, %d skipped",
            run.payroll_run_id,
            run.total_employees,
            run.total_amount,
            len(skips),
        )

        return RunProcessingReport(
            run=run,
            payslips=created,
            skipped=skips,
            employees={e.employee_id: e for e in employees},
        )

    async def _compute_all(
        self,
        run: PayrollRun,
        period: PayPeriod,
        calculator: PayslipCalculator,
        employees: list[Employee],
    ) -> list[ComputationOutcome]:
        if self.reader_factory is None:
            return [
                await self._compute_guarded(self.session, run, period, calculator, employee)
                for employee in employees
            ]

        semaphore = asyncio.Semaphore(self.max_concurrency)
        factory = self.reader_factory

        async def compute(employee: Employee) -> ComputationOutcome:
            async with semaphore:
                async with factory() as reader:
                    return await self._compute_guarded(reader, run, period, calculator, employee)

        # gather keeps results in employee order
        return list(await asyncio.gather(*(compute(e) for e in employees)))

    async def _compute_guarded(
        self,
        session: AsyncSession,
        run: PayrollRun,
        period: PayPeriod,
        calculator: PayslipCalculator,
        employee: Employee,
    ) -> ComputationOutcome:
        """Compute one employee; a timeout or read failure becomes a skip."""
        try:
            return await asyncio.wait_for(
                self._compute_one(session, run, period, calculator, employee),
                timeout=self.store_timeout,
            )
        except asyncio.TimeoutError:
            logger.error(
                "Timed out after %ss computing employee %s in run %s",
                self.store_timeout,
                employee.employee_id,
                run.payroll_run_id,
            )
            detail = f"Timed out after {self.store_timeout}s"
        except Exception as e:
            logger.exception(
                "Failed computing employee %s in run %s",
                employee.employee_id,
                run.payroll_run_id,
            )
            detail = f"{type(e).__name__}: {e}"
        return PayslipSkip(
            user_id=employee.employee_id,
            reason=SkipReason.COMPUTATION_FAILED,
            detail=detail,
        )

    @staticmethod
    async def _compute_one(
        session: AsyncSession,
        run: PayrollRun,
        period: PayPeriod,
        calculator: PayslipCalculator,
        employee: Employee,
    ) -> ComputationOutcome:
        user_id = employee.employee_id
        structure = await SalaryStructureService(session).active_for_user(user_id)
        if structure is None:
            return calculator.compute(
                user_id=user_id,
                payroll_run_id=run.payroll_run_id,
                period=period,
                structure=None,
                attendance=(),
                leaves=(),
            )

        attendance = await AttendanceLedger(session).list_for_user_in_range(
            user_id, period.start, period.end
        )
        leaves = await LeaveLedger(session).list_approved_for_user_in_range(
            user_id, period.start, period.end
        )
        return calculator.compute(
            user_id=user_id,
            payroll_run_id=run.payroll_run_id,
            period=period,
            structure=structure,
            attendance=attendance,
            leaves=leaves,
        )

    # === Side effects ===

    async def _audit(
        self,
        action: AuditAction,
        run: PayrollRun,
        actor_id: UUID | None,
        *,
        before: dict[str, Any] | None,
        after: dict[str, Any] | None,
    ) -> None:
        await self.emitter.emit(AuditRecord(
            action=action,
            entity_type="payroll_run",
            entity_id=run.payroll_run_id,
            actor_id=actor_id,
            before=before,
            after=after,
        ))

    def _notify(self, report: RunProcessingReport) -> None:
        if self.dispatcher is None or not report.payslips:
            return
        notices = []
        for payslip in report.payslips:
            employee = report.employees.get(payslip.user_id)
            if employee is None or not employee.email:
                continue
            notices.append(PayslipNotice(
                email=employee.email,
                first_name=employee.first_name,
                month=report.run.month,
                year=report.run.year,
                payslip_id=payslip.payslip_id,
            ))
        self.dispatcher.dispatch(notices)
