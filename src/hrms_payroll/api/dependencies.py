"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hrms_payroll.config import get_settings
from hrms_payroll.database import init_db
from hrms_payroll.services.access import Actor, ensure_elevated
from hrms_payroll.services.payroll_run_service import PayrollRunService
from hrms_payroll.services.reporting_service import PayslipReportingService


def get_session_factory(request: Request) -> async_sessionmaker[AsyncSession]:
    """Session factory installed on the app, else the global one."""
    factory = getattr(request.app.state, "session_factory", None)
    if factory is None:
        _, factory = init_db()
        request.app.state.session_factory = factory
    return factory


SessionFactory = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]


async def get_db_session(factory: SessionFactory) -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with factory() as session:
        try:
            yield session
        finally:
            await session.close()


async def get_actor(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_role: Annotated[str | None, Header()] = None,
) -> Actor:
    """Caller identity, asserted upstream by the authentication layer."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-ID header is required",
        )
    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-User-ID format",
        )
    return Actor(user_id=user_id, role_name=x_user_role)


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
CurrentActor = Annotated[Actor, Depends(get_actor)]


async def require_elevated(actor: CurrentActor) -> Actor:
    ensure_elevated(actor, get_settings().elevated_roles)
    return actor


ElevatedActor = Annotated[Actor, Depends(require_elevated)]


def get_run_service(
    request: Request, db: DbSession, factory: SessionFactory
) -> PayrollRunService:
    return PayrollRunService(
        db,
        emitter=request.app.state.emitter,
        dispatcher=request.app.state.dispatcher,
        reader_factory=factory,
    )


def get_reporting_service(db: DbSession) -> PayslipReportingService:
    return PayslipReportingService(db)


RunService = Annotated[PayrollRunService, Depends(get_run_service)]
ReportingService = Annotated[PayslipReportingService, Depends(get_reporting_service)]
