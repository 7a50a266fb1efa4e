"""Payroll run and payslip API endpoints."""

from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Path, Query, Response, status

from hrms_payroll.api.dependencies import (
    CurrentActor,
    ElevatedActor,
    ReportingService,
    RunService,
)
from hrms_payroll.api.schemas import (
    ErrorResponse,
    PayrollRunCreate,
    PayrollRunListResponse,
    PayrollRunResponse,
    PayrollRunUpdate,
    PayslipListResponse,
    PayslipResponse,
    ProcessRunResponse,
    SkipResponse,
    ValidateRequest,
    ValidateResponse,
)
from hrms_payroll.events.types import serialize
from hrms_payroll.services.payroll_run_service import RunProcessingReport
from hrms_payroll.services.payslip_store import PayslipFilter

router = APIRouter(prefix="/payroll", tags=["payroll"])


def _report_response(report: RunProcessingReport) -> ProcessRunResponse:
    return ProcessRunResponse(
        run=PayrollRunResponse.model_validate(report.run),
        processed_count=report.processed_count,
        skipped=[
            SkipResponse(user_id=s.user_id, reason=s.reason.value, detail=s.detail)
            for s in report.skipped
        ],
    )


# ============================================================================
# Payroll Runs
# ============================================================================


@router.post(
    "/runs",
    response_model=PayrollRunResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
)
async def create_run(
    service: RunService,
    actor: ElevatedActor,
    payload: PayrollRunCreate,
) -> PayrollRunResponse:
    """Create a payroll run in draft status."""
    run = await service.create_run(
        payload.month, payload.year, actor_id=actor.user_id, notes=payload.notes
    )
    return PayrollRunResponse.model_validate(run)


@router.get("/runs", response_model=PayrollRunListResponse)
async def list_runs(
    service: RunService,
    actor: ElevatedActor,
    month: Annotated[int | None, Query(ge=1, le=12)] = None,
    year: int | None = None,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> PayrollRunListResponse:
    runs = await service.list_runs(month=month, year=year, status=status_filter)
    return PayrollRunListResponse(
        items=[PayrollRunResponse.model_validate(r) for r in runs],
        total=len(runs),
    )


@router.get(
    "/runs/{run_id}",
    response_model=PayrollRunResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_run(
    service: RunService,
    actor: ElevatedActor,
    run_id: Annotated[UUID, Path()],
) -> PayrollRunResponse:
    return PayrollRunResponse.model_validate(await service.get_run(run_id))


@router.get("/runs/{run_id}/summary", responses={404: {"model": ErrorResponse}})
async def get_run_summary(
    service: RunService,
    actor: ElevatedActor,
    run_id: Annotated[UUID, Path()],
) -> dict[str, Any]:
    summary = await service.run_summary(run_id)
    return summary.to_dict()


@router.patch(
    "/runs/{run_id}",
    response_model=PayrollRunResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_run(
    service: RunService,
    actor: ElevatedActor,
    run_id: Annotated[UUID, Path()],
    payload: PayrollRunUpdate,
) -> PayrollRunResponse:
    run = await service.update_notes(run_id, payload.notes, actor_id=actor.user_id)
    return PayrollRunResponse.model_validate(run)


@router.post(
    "/runs/{run_id}/process",
    response_model=ProcessRunResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def process_run(
    service: RunService,
    actor: ElevatedActor,
    run_id: Annotated[UUID, Path()],
) -> ProcessRunResponse:
    """Compute payslips for every active employee.

    Employees without an active salary structure are listed under
    skipped; the run still completes.
    """
    report = await service.process_run(run_id, actor_id=actor.user_id)
    return _report_response(report)


@router.post(
    "/runs/{run_id}/resume",
    response_model=ProcessRunResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def resume_run(
    service: RunService,
    actor: ElevatedActor,
    run_id: Annotated[UUID, Path()],
) -> ProcessRunResponse:
    report = await service.resume_run(run_id, actor_id=actor.user_id)
    return _report_response(report)


@router.post(
    "/validate",
    response_model=ValidateResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def validate(
    service: RunService,
    actor: ElevatedActor,
    payload: ValidateRequest,
) -> ValidateResponse:
    """Lock a run (cascading to its payslips) or a single payslip."""
    if payload.type == "run":
        run = await service.validate_run(payload.id, actor_id=actor.user_id)
        return ValidateResponse(
            type="run", id=run.payroll_run_id, status=run.status, validated_at=run.validated_at
        )
    payslip = await service.validate_payslip(payload.id, actor_id=actor.user_id)
    return ValidateResponse(
        type="payslip",
        id=payslip.payslip_id,
        status=payslip.status,
        validated_at=payslip.validated_at,
    )


# ============================================================================
# Payslips
# ============================================================================


@router.get("/payslips", response_model=PayslipListResponse)
async def list_payslips(
    reporting: ReportingService,
    actor: CurrentActor,
    run_id: UUID | None = None,
    user_id: UUID | None = None,
    month: Annotated[int | None, Query(ge=1, le=12)] = None,
    year: int | None = None,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> PayslipListResponse:
    payslips = await reporting.list_payslips(
        actor,
        PayslipFilter(
            payroll_run_id=run_id,
            user_id=user_id,
            month=month,
            year=year,
            status=status_filter,
        ),
    )
    return PayslipListResponse(
        items=[PayslipResponse.model_validate(p) for p in payslips],
        total=len(payslips),
    )


@router.get("/payslips/my", response_model=PayslipListResponse)
async def list_my_payslips(
    reporting: ReportingService,
    actor: CurrentActor,
    month: Annotated[int | None, Query(ge=1, le=12)] = None,
    year: int | None = None,
) -> PayslipListResponse:
    payslips = await reporting.list_my_payslips(actor, month=month, year=year)
    return PayslipListResponse(
        items=[PayslipResponse.model_validate(p) for p in payslips],
        total=len(payslips),
    )


@router.get("/payslips/export.csv")
async def export_payslips(
    reporting: ReportingService,
    actor: ElevatedActor,
    run_id: UUID | None = None,
    month: Annotated[int | None, Query(ge=1, le=12)] = None,
    year: int | None = None,
) -> Response:
    content = await reporting.export_payslips_csv(
        PayslipFilter(payroll_run_id=run_id, month=month, year=year)
    )
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="payslips.csv"'},
    )


@router.get(
    "/payslips/{payslip_id}",
    response_model=PayslipResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_payslip(
    reporting: ReportingService,
    actor: CurrentActor,
    payslip_id: Annotated[UUID, Path()],
) -> PayslipResponse:
    payslip = await reporting.get_payslip(payslip_id, actor)
    return PayslipResponse.model_validate(payslip)


@router.get(
    "/payslips/{payslip_id}/computation",
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_payslip_computation(
    reporting: ReportingService,
    actor: CurrentActor,
    payslip_id: Annotated[UUID, Path()],
) -> dict[str, Any]:
    """Worked days and salary computation behind a payslip."""
    computation = await reporting.explain(payslip_id, actor)
    return serialize(computation.to_dict())
