"""Payroll period and run API endpoints."""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, HTTPException, Path, Query, Response, status

from hr_payroll.api.dependencies import ActorId, Registry, Resolver, Services, TenantId
from hr_payroll.api.schemas import (
    ErrorResponse,
    PayrollLineResponse,
    PayrollRunResponse,
    PeriodResponse,
    RunCommitRequest,
    RunCommitResponse,
    RunVerificationResponse,
)
from hr_payroll.calculators.engine import CalculationInputError, NegativeNetSalaryError
from hr_payroll.calculators.types import InvalidPeriodError, PayPeriod, PayrollValidationError
from hr_payroll.collaborators.base import ProfileNotFoundError, UpstreamUnavailable
from hr_payroll.services.materializer import ArtifactRenderError
from hr_payroll.services.run_registry import (
    NoEmployeesFound,
    RunAlreadyProcessed,
    RunNotFound,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payroll", tags=["payroll"])


def parse_period(month: int, year: int) -> PayPeriod:
    """Validate a month/year pair from a request."""
    try:
        return PayPeriod.of(month, year)
    except InvalidPeriodError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )


def upstream_error(e: UpstreamUnavailable) -> HTTPException:
    logger.warning("Upstream failure: %s", e)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail={"message": str(e), "code": "UPSTREAM_UNAVAILABLE", "service": e.service},
    )


# ============================================================================
# Period preview
# ============================================================================


@router.get(
    "/period",
    response_model=PeriodResponse,
    responses={400: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def get_payroll_period(
    tenant_id: TenantId,
    registry: Registry,
    resolver: Resolver,
    month: Annotated[int, Query()],
    year: Annotated[int, Query()],
    deselected: Annotated[list[str] | None, Query()] = None,
) -> PeriodResponse:
    """Committed run of the period, or a live preview when none exists yet."""
    period = parse_period(month, year)

    run = await registry.get_run(tenant_id, period)
    if run is not None:
        items = await registry.list_items(run.id)
        return PeriodResponse(
            month=month,
            year=year,
            is_processed=True,
            run_details=PayrollRunResponse.model_validate(run),
            employees=[PayrollLineResponse.model_validate(item) for item in items],
            selected_total_net=run.total_net,
        )

    try:
        resolution = await resolver.resolve(tenant_id, period, deselected=deselected or ())
    except UpstreamUnavailable as e:
        raise upstream_error(e)

    return PeriodResponse(
        month=month,
        year=year,
        is_processed=False,
        run_details=None,
        employees=[PayrollLineResponse.model_validate(line) for line in resolution.lines],
        errors=resolution.errors,
        selected_total_net=resolution.total_net,
    )


# ============================================================================
# Run commit
# ============================================================================


@router.post(
    "/run",
    response_model=RunCommitResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def run_payroll(
    tenant_id: TenantId,
    actor_id: ActorId,
    registry: Registry,
    payload: RunCommitRequest,
) -> RunCommitResponse:
    """Commit the period's payroll for the selected employees. Runs at most once."""
    period = parse_period(payload.month, payload.year)

    try:
        run = await registry.commit_run(
            tenant_id, period, payload.employee_ids, actor_id=actor_id
        )
    except RunAlreadyProcessed as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": "Payroll for this period has already been processed.",
                "code": "RUN_ALREADY_PROCESSED",
                "run": PayrollRunResponse.model_validate(e.run).model_dump(mode="json"),
            },
        )
    except (PayrollValidationError, NoEmployeesFound) as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )
    except (CalculationInputError, NegativeNetSalaryError, ProfileNotFoundError) as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "message": str(e),
                "code": "COMPUTATION_ERROR",
                "employee_id": e.employee_id,
            },
        )
    except UpstreamUnavailable as e:
        raise upstream_error(e)

    return RunCommitResponse(
        payroll_run=PayrollRunResponse.model_validate(run),
        message=f"Payroll for {period.label} processed for {run.total_employees} employees.",
    )


# ============================================================================
# Run reads
# ============================================================================


@router.get(
    "/run/{run_id}",
    response_model=PayrollRunResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_payroll_run(
    tenant_id: TenantId,
    registry: Registry,
    run_id: Annotated[UUID, Path()],
) -> PayrollRunResponse:
    """Get a specific payroll run by ID."""
    try:
        run = await registry.get_run_by_id(tenant_id, run_id)
    except RunNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return PayrollRunResponse.model_validate(run)


@router.get(
    "/run/{run_id}/verify",
    response_model=RunVerificationResponse,
    responses={404: {"model": ErrorResponse}},
)
async def verify_payroll_run(
    tenant_id: TenantId,
    registry: Registry,
    run_id: Annotated[UUID, Path()],
) -> RunVerificationResponse:
    """Re-sum a persisted run's payslips and check its totals."""
    try:
        run = await registry.get_run_by_id(tenant_id, run_id)
    except RunNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    is_valid, errors = await registry.verify_run(run.id)
    if not is_valid:
        logger.error("Payroll run %s failed verification: %s", run.id, errors)
    return RunVerificationResponse(run_id=run.id, is_valid=is_valid, errors=errors)


@router.get(
    "/run/{run_id}/export",
    response_class=Response,
    responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def export_payroll_run(
    tenant_id: TenantId,
    registry: Registry,
    services: Services,
    run_id: Annotated[UUID, Path()],
) -> Response:
    """Download the run summary report as a PDF."""
    try:
        run = await registry.get_run_by_id(tenant_id, run_id)
    except RunNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    items = await registry.list_items(run.id)
    materializer = await services.dispatcher.materializer_for(tenant_id)
    try:
        document = materializer.render_run_summary(run, items)
    except ArtifactRenderError as e:
        logger.error("Run report for %s could not be rendered: %s", run.id, e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"message": str(e), "code": "ARTIFACT_RENDER_ERROR"},
        )

    return Response(
        content=document.content,
        media_type=document.content_type,
        headers={"Content-Disposition": f'attachment; filename="{document.filename}"'},
    )
