"""Pytest fixtures for payroll engine tests."""

from __future__ import annotations

from typing import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hrms_payroll.database import create_all, get_engine, make_session_factory
from hrms_payroll.events.emitter import AuditEmitter
from hrms_payroll.events.types import AuditRecord
from hrms_payroll.models import Employee
from hrms_payroll.services.payroll_run_service import PayrollRunService

from factories import add_employee, add_structure

# A file-backed SQLite database per test: separate connections really
# compete for the write lock, which the concurrency tests rely on.


@pytest.fixture
async def engine(tmp_path):
    """Create test database engine."""
    engine = get_engine(f"sqlite+aiosqlite:///{tmp_path / 'payroll.db'}")
    await create_all(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(engine)


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


class RecordingHandler:
    """Audit handler that keeps what it receives."""

    def __init__(self) -> None:
        self.records: list[AuditRecord] = []

    def __call__(self, record: AuditRecord) -> None:
        self.records.append(record)

    @property
    def actions(self) -> list[str]:
        return [r.action.value for r in self.records]


@pytest.fixture
def audit_log() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture
def emitter(audit_log: RecordingHandler) -> AuditEmitter:
    emitter = AuditEmitter()
    emitter.on_all(audit_log)
    return emitter


@pytest.fixture
def run_service(session, session_factory, emitter) -> PayrollRunService:
    return PayrollRunService(
        session,
        emitter=emitter,
        reader_factory=session_factory,
        max_concurrency=4,
        store_timeout=10,
    )


@pytest.fixture
async def staffed_company(session: AsyncSession) -> dict[str, Employee]:
    """Three active employees with structures, one without, one inactive.

    All structures total 87,500 full gross (basic 50,000).
    """
    alice = await add_employee(session, "E001", "Alice", "Rao")
    bob = await add_employee(session, "E002", "Bob", "Iyer")
    chen = await add_employee(session, "E003", "Chen", "Das")
    nostruct = await add_employee(session, "E004", "Dev", "Nair")
    retired = await add_employee(session, "E005", "Esha", "Pillai", is_active=False)

    for employee in (alice, bob, chen, retired):
        await add_structure(session, employee.employee_id)

    await session.commit()
    return {
        "alice": alice,
        "bob": bob,
        "chen": chen,
        "nostruct": nostruct,
        "retired": retired,
    }
