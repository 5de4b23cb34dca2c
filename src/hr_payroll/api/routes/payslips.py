"""Payslip listing, download and distribution endpoints."""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, HTTPException, Path, Query, Response, status

from hr_payroll.api.dependencies import ActorId, Dispatcher, Registry, TenantId
from hr_payroll.api.routes.payroll import parse_period
from hr_payroll.api.schemas import (
    BatchOutcomeResponse,
    DistributionOutcomeResponse,
    ErrorResponse,
    PayslipResponse,
    SendAllRequest,
    SendResponse,
)
from hr_payroll.services.dispatcher import DistributionOutcome
from hr_payroll.services.materializer import ArtifactRenderError, Document
from hr_payroll.services.run_registry import PayslipNotFound

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payslips", tags=["payslips"])


def document_response(document: Document) -> Response:
    return Response(
        content=document.content,
        media_type=document.content_type,
        headers={"Content-Disposition": f'attachment; filename="{document.filename}"'},
    )


def render_error(e: ArtifactRenderError) -> HTTPException:
    logger.error("Payslip could not be rendered: %s", e)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"message": str(e), "code": "ARTIFACT_RENDER_ERROR"},
    )


def outcome_response(outcome: DistributionOutcome) -> DistributionOutcomeResponse:
    return DistributionOutcomeResponse(
        payslip_id=outcome.payslip_id,
        employee_id=outcome.employee_id,
        accepted=outcome.accepted,
        status=outcome.status.value,
        error=outcome.error,
    )


# ============================================================================
# Reads
# ============================================================================


@router.get(
    "",
    response_model=list[PayslipResponse],
    responses={400: {"model": ErrorResponse}},
)
async def list_payslips(
    tenant_id: TenantId,
    registry: Registry,
    month: Annotated[int, Query()],
    year: Annotated[int, Query()],
) -> list[PayslipResponse]:
    """Payslips of the period; empty until payroll has been run."""
    period = parse_period(month, year)
    items = await registry.list_payslips(tenant_id, period)
    return [PayslipResponse.model_validate(item) for item in items]


@router.get(
    "/employee/{employee_id}/latest/download",
    response_class=Response,
    responses={404: {"model": ErrorResponse}},
)
async def download_latest_payslip(
    tenant_id: TenantId,
    dispatcher: Dispatcher,
    employee_id: Annotated[str, Path()],
) -> Response:
    """Download an employee's most recent payslip."""
    try:
        document = await dispatcher.download_latest(tenant_id, employee_id)
    except PayslipNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ArtifactRenderError as e:
        raise render_error(e)
    return document_response(document)


@router.get(
    "/{payslip_id}",
    response_model=PayslipResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_payslip(
    tenant_id: TenantId,
    registry: Registry,
    payslip_id: Annotated[UUID, Path()],
) -> PayslipResponse:
    """Get a specific payslip by ID."""
    try:
        item = await registry.get_item(tenant_id, payslip_id)
    except PayslipNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return PayslipResponse.model_validate(item)


@router.get(
    "/{payslip_id}/download",
    response_class=Response,
    responses={404: {"model": ErrorResponse}},
)
async def download_payslip(
    tenant_id: TenantId,
    dispatcher: Dispatcher,
    payslip_id: Annotated[UUID, Path()],
) -> Response:
    """Download a payslip PDF. Does not change its distribution status."""
    try:
        document = await dispatcher.download(tenant_id, payslip_id)
    except PayslipNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ArtifactRenderError as e:
        raise render_error(e)
    return document_response(document)


# ============================================================================
# Distribution
# ============================================================================


@router.post(
    "/send-all",
    response_model=BatchOutcomeResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def send_all_payslips(
    tenant_id: TenantId,
    actor_id: ActorId,
    registry: Registry,
    dispatcher: Dispatcher,
    payload: SendAllRequest,
) -> BatchOutcomeResponse:
    """Email every payslip of the period. One failure never stops the others."""
    period = parse_period(payload.month, payload.year)
    run = await registry.get_run(tenant_id, period)
    if run is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No payroll run found for {period.label}",
        )

    batch = await dispatcher.send_batch(tenant_id, run.id, actor_id=actor_id)
    return BatchOutcomeResponse(
        message=f"Sent {batch.sent} payslips for {period.label}; {batch.failed} failed.",
        run_id=batch.run_id,
        sent=batch.sent,
        failed=batch.failed,
        failed_employee_ids=batch.failed_employee_ids,
        outcomes=[outcome_response(o) for o in batch.outcomes],
    )


@router.post(
    "/{payslip_id}/send",
    response_model=SendResponse,
    responses={404: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)
async def send_payslip(
    tenant_id: TenantId,
    actor_id: ActorId,
    dispatcher: Dispatcher,
    payslip_id: Annotated[UUID, Path()],
) -> SendResponse:
    """Email one payslip to its employee."""
    try:
        outcome = await dispatcher.send_one(tenant_id, payslip_id, actor_id=actor_id)
    except PayslipNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    if not outcome.accepted:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={
                "message": f"Payslip could not be sent: {outcome.error}",
                "code": "DISTRIBUTION_FAILED",
                "outcome": outcome_response(outcome).model_dump(mode="json"),
            },
        )
    return SendResponse(message="Payslip sent successfully.", outcome=outcome_response(outcome))
