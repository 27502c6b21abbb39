"""
Domain Verification API

Lets a company prove it controls its claimed website domain:
  1. Initiate a verification (issues the token and file name)
  2. Get instructions (verification file, DNS TXT record)
  3. Verify now (manual check)
  4. Retry after the attempt limit
  5. Trigger the automatic sweep on demand
"""
import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, status

from app.api import deps
from app.models.domain_verification import DomainVerification
from app.schemas.domain_verification import (
    ApiResponse,
    DomainVerificationOut,
    InitiateVerificationRequest,
    SweepEnqueued,
    VerificationDetail,
    VerificationInstructions,
)
from app.services.domain_verification import DomainVerificationService, build_instructions

router = APIRouter()
logger = logging.getLogger("cmms.domain_verification.api")


def _detail(service: DomainVerificationService, verification: DomainVerification) -> VerificationDetail:
    return VerificationDetail(
        verification=DomainVerificationOut.model_validate(verification),
        instructions=VerificationInstructions(
            **build_instructions(verification, service.max_attempts)
        ),
    )


@router.post(
    "/initiate",
    response_model=ApiResponse[VerificationDetail],
    status_code=status.HTTP_201_CREATED,
)
def initiate_verification(
    body: InitiateVerificationRequest,
    service: DomainVerificationService = Depends(deps.get_verification_service),
) -> Any:
    """Start domain verification for a company (or resume the pending one)."""
    verification = service.initiate(body.company_id, body.method)
    return ApiResponse(
        success=True,
        message="Domain verification initiated. Please follow the instructions to verify your domain.",
        data=_detail(service, verification),
    )


@router.post("/sweep", response_model=ApiResponse[SweepEnqueued], status_code=status.HTTP_202_ACCEPTED)
def trigger_sweep() -> Any:
    """Queue the automatic verification sweep now instead of waiting for the schedule."""
    from app.tasks.verification_tasks import sweep_pending_verifications_task

    task = sweep_pending_verifications_task.delay()
    logger.info("Manual verification sweep queued: task %s", task.id)
    return ApiResponse(
        success=True,
        message="Verification sweep queued",
        data=SweepEnqueued(task_id=str(task.id)),
    )


@router.get("/company/{company_id}/status", response_model=ApiResponse[VerificationDetail])
def get_company_status(
    company_id: UUID,
    service: DomainVerificationService = Depends(deps.get_verification_service),
) -> Any:
    """Latest verification for a company, or ``data: null`` if none was ever started."""
    verification = service.get_status(company_id)
    if verification is None:
        return ApiResponse(success=True, message="No domain verification found", data=None)
    return ApiResponse(success=True, data=_detail(service, verification))


@router.get("/{verification_id}", response_model=ApiResponse[VerificationDetail])
def get_verification(
    verification_id: UUID,
    service: DomainVerificationService = Depends(deps.get_verification_service),
) -> Any:
    verification = service.get_verification(verification_id)
    return ApiResponse(success=True, data=_detail(service, verification))


@router.post("/{verification_id}/verify", response_model=ApiResponse[VerificationDetail])
def verify_now(
    verification_id: UUID,
    service: DomainVerificationService = Depends(deps.get_verification_service),
) -> Any:
    """
    Manual "Verify Now".

    A failed check is still a 200: the record carries the failure reason and
    ``success`` is false.
    """
    verification = service.check_now(verification_id)
    if verification.is_verified:
        message = "Domain verified successfully!"
    else:
        message = f"Domain verification failed: {verification.failure_reason}"
    return ApiResponse(
        success=verification.is_verified,
        message=message,
        data=_detail(service, verification),
    )


@router.post("/{verification_id}/retry", response_model=ApiResponse[VerificationDetail])
def retry_verification(
    verification_id: UUID,
    service: DomainVerificationService = Depends(deps.get_verification_service),
) -> Any:
    """Reset a failed verification to pending with a fresh attempt budget."""
    verification = service.retry(verification_id)
    return ApiResponse(
        success=True,
        message="Verification reset. You can now try verifying again.",
        data=_detail(service, verification),
    )


@router.get("/{verification_id}/instructions", response_model=ApiResponse[VerificationInstructions])
def get_instructions(
    verification_id: UUID,
    service: DomainVerificationService = Depends(deps.get_verification_service),
) -> Any:
    return ApiResponse(
        success=True,
        data=VerificationInstructions(**service.get_instructions(verification_id)),
    )
