"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hrms_payroll.api.routes import health_router, payroll_router
from hrms_payroll.config import get_settings
from hrms_payroll.database import dispose_db, init_db
from hrms_payroll.events.emitter import AuditEmitter
from hrms_payroll.events.handlers import DatabaseAuditHandler, LoggingAuditHandler
from hrms_payroll.exceptions import PayrollError
from hrms_payroll.logging_config import configure_logging
from hrms_payroll.services.notification_service import EmailNotifier, NotificationDispatcher, Notifier

logger = logging.getLogger(__name__)

STATUS_BY_CODE = {
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "DUPLICATE_RUN": status.HTTP_409_CONFLICT,
    "INVALID_STATE": status.HTTP_409_CONFLICT,
    "LOCKED": status.HTTP_409_CONFLICT,
    "ACCESS_DENIED": status.HTTP_403_FORBIDDEN,
    "VALIDATION_ERROR": status.HTTP_422_UNPROCESSABLE_ENTITY,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    if app.state.session_factory is None:
        _, app.state.session_factory = init_db()
        app.state.emitter.on_all(DatabaseAuditHandler(app.state.session_factory))
    yield
    # Shutdown
    await app.state.dispatcher.drain()
    await dispose_db()


def create_app(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    notifier: Notifier | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="HRMS Payroll API",
        description="Monthly payroll runs, payslips and their validation",
        version=settings.engine_version,
        lifespan=lifespan,
    )
    app.state.session_factory = session_factory

    emitter = AuditEmitter()
    emitter.on_all(LoggingAuditHandler())
    if session_factory is not None:
        emitter.on_all(DatabaseAuditHandler(session_factory))
    app.state.emitter = emitter
    app.state.dispatcher = NotificationDispatcher(notifier or EmailNotifier(settings))

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(PayrollError)
    async def payroll_exception_handler(
        request: Request, exc: PayrollError
    ) -> JSONResponse:
        """Map payroll errors to HTTP statuses by code."""
        return JSONResponse(
            status_code=STATUS_BY_CODE.get(exc.code, status.HTTP_400_BAD_REQUEST),
            content=exc.to_dict(),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(payroll_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
