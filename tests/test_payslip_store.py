"""Tests for payslip storage and the validation lock."""

from dataclasses import replace
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import update

from hrms_payroll.calculators.types import PayslipDraft
from hrms_payroll.exceptions import (
    InvalidStateError,
    LockedError,
    NotFoundError,
    PayrollValidationError,
)
from hrms_payroll.models import PayrollRun
from hrms_payroll.services.payslip_store import PayslipFilter, PayslipStore


def flat_draft(user_id, payroll_run_id, amount: str = "100") -> PayslipDraft:
    """A payslip with one basic line and no deductions."""
    value = Decimal(amount)
    return PayslipDraft(
        user_id=user_id,
        payroll_run_id=payroll_run_id,
        basic_salary=value,
        hra=Decimal("0"),
        transport_allowance=Decimal("0"),
        medical_allowance=Decimal("0"),
        other_allowances=Decimal("0"),
        gross_salary=value,
        pf_employee=Decimal("0"),
        pf_employer=Decimal("0"),
        professional_tax=Decimal("0"),
        other_deductions=Decimal("0"),
        total_deductions=Decimal("0"),
        net_salary=value,
        working_days=30,
        present_days=0,
        leave_days=Decimal("0"),
        absent_days=Decimal("0"),
    )


@pytest.fixture
async def processed_run(run_service, staffed_company):
    run = await run_service.create_run(4, 2025)
    return await run_service.process_run(run.payroll_run_id)


async def reopen_for_processing(session, run_id) -> None:
    await session.execute(
        update(PayrollRun)
        .where(PayrollRun.payroll_run_id == run_id)
        .values(status="processing")
    )
    await session.commit()


class TestLookup:
    async def test_find_by_run_and_user(self, session, processed_run, staffed_company):
        store = PayslipStore(session)
        alice = staffed_company["alice"]

        found = await store.find(PayslipFilter(payroll_run_id=processed_run.run.payroll_run_id))
        assert len(found) == 3

        mine = await store.find(PayslipFilter(user_id=alice.employee_id, month=4, year=2025))
        assert [p.user_id for p in mine] == [alice.employee_id]

        assert await store.find(PayslipFilter(month=5, year=2025)) == []

    async def test_get_unknown(self, session):
        with pytest.raises(NotFoundError):
            await PayslipStore(session).get(uuid4())


class TestCreate:
    async def test_create_refuses_second_payslip(self, session, processed_run):
        existing = processed_run.payslips[0]
        await reopen_for_processing(session, existing.payroll_run_id)

        with pytest.raises(InvalidStateError):
            await PayslipStore(session).create(flat_draft(existing.user_id, existing.payroll_run_id))

    async def test_create_into_processing_run(self, session, processed_run, staffed_company):
        run_id = processed_run.run.payroll_run_id
        await reopen_for_processing(session, run_id)
        store = PayslipStore(session)

        payslip = await store.create(flat_draft(staffed_company["nostruct"].employee_id, run_id))

        assert payslip.status == "pending"
        assert (await store.totals_for_run(run_id))[0] == 4

    async def test_paid_run_rejects_new_payslip(self, session, run_service, processed_run, staffed_company):
        run_id = processed_run.run.payroll_run_id
        await run_service.validate_run(run_id)
        store = PayslipStore(session)

        with pytest.raises(LockedError):
            await store.create(flat_draft(staffed_company["nostruct"].employee_id, run_id))

        count, total = await store.totals_for_run(run_id)
        run = await run_service.get_run(run_id)
        assert count == run.total_employees == 3
        assert total == run.total_amount

    @pytest.mark.parametrize("status", ["draft", "completed"])
    async def test_run_not_processing_rejects_new_payslip(self, session, run_service, staffed_company, status):
        run = await run_service.create_run(4, 2025)
        await session.execute(
            update(PayrollRun)
            .where(PayrollRun.payroll_run_id == run.payroll_run_id)
            .values(status=status)
        )
        await session.commit()

        with pytest.raises(InvalidStateError):
            await PayslipStore(session).create(
                flat_draft(staffed_company["alice"].employee_id, run.payroll_run_id)
            )

    async def test_unknown_run(self, session, staffed_company):
        with pytest.raises(NotFoundError):
            await PayslipStore(session).create(flat_draft(staffed_company["alice"].employee_id, uuid4()))

    async def test_inconsistent_net_rejected(self, session, processed_run):
        existing = processed_run.payslips[0]
        draft = flat_draft(existing.user_id, existing.payroll_run_id)
        bad = replace(draft, net_salary=Decimal("1"))

        with pytest.raises(PayrollValidationError):
            await PayslipStore(session).create(bad)

class TestMutation:
    async def test_update_pending_payslip(self, session, processed_run):
        payslip = processed_run.payslips[0]
        store = PayslipStore(session)

        updated = await store.update(payslip.payslip_id, other_deductions=Decimal("100"))
        assert updated.other_deductions == Decimal("100")

    async def test_update_must_keep_net_consistent(self, session, processed_run):
        payslip = processed_run.payslips[0]

        with pytest.raises(PayrollValidationError):
            await PayslipStore(session).update(payslip.payslip_id, net_salary=Decimal("1"))

    async def test_unknown_field_rejected(self, session, processed_run):
        payslip = processed_run.payslips[0]

        with pytest.raises(PayrollValidationError):
            await PayslipStore(session).update(payslip.payslip_id, status="pending")

    async def test_delete_pending(self, session, processed_run):
        payslip = processed_run.payslips[0]
        store = PayslipStore(session)

        await store.delete(payslip.payslip_id)

        with pytest.raises(NotFoundError):
            await store.get(payslip.payslip_id)


class TestValidationLock:
    """Done payslips, and payslips of paid runs, reject every mutation."""

    async def test_done_payslip_rejects_update_and_delete(self, session, run_service, processed_run):
        payslip = processed_run.payslips[0]
        await run_service.validate_payslip(payslip.payslip_id)
        store = PayslipStore(session)

        with pytest.raises(LockedError):
            await store.update(payslip.payslip_id, other_deductions=Decimal("1"))
        with pytest.raises(LockedError):
            await store.delete(payslip.payslip_id)

    async def test_paid_run_locks_payslips(self, session, run_service, processed_run):
        await run_service.validate_run(processed_run.run.payroll_run_id)
        store = PayslipStore(session)

        for payslip in processed_run.payslips:
            with pytest.raises(LockedError):
                await store.update(payslip.payslip_id, hra=Decimal("0"))

    async def test_orm_write_to_done_payslip_blocked(self, session, run_service, processed_run):
        """Writes that bypass the store still hit the lock at flush."""
        payslip = processed_run.payslips[0]
        await run_service.validate_payslip(payslip.payslip_id)

        fresh = await PayslipStore(session).get(payslip.payslip_id)
        fresh.net_salary = Decimal("0")
        with pytest.raises(LockedError):
            await session.flush()
        await session.rollback()

    async def test_mark_done_is_idempotent(self, session, processed_run):
        payslip = processed_run.payslips[0]
        store = PayslipStore(session)

        assert await store.mark_done(payslip) is True
        assert await store.mark_done(payslip) is False
        assert payslip.status == "done"
