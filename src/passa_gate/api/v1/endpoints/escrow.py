# src/passa_gate/api/v1/endpoints/escrow.py
"""Dual-key escrow endpoints."""

from fastapi import APIRouter, HTTPException, status

from passa_gate.api.v1.dependencies import EscrowCoordinatorDep
from passa_gate.schemas.escrow import (
    AgreementStatusResponse,
    PayoutReleaseRequest,
    PayoutResponse,
    SecretSubmission,
    SubmissionResponse,
)
from passa_gate.services.directory import AgreementNotFound
from passa_gate.services.escrow import (
    IdentityMismatch,
    NotReady,
    PayoutReleased,
    RetryableFailure,
    Success,
)

router = APIRouter(prefix="/escrow", tags=["escrow"])


def _not_found(agreement_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Agreement {agreement_id} not found",
    )


@router.get("/{agreement_id}", response_model=AgreementStatusResponse)
async def get_agreement(
    agreement_id: str,
    coordinator: EscrowCoordinatorDep,
) -> AgreementStatusResponse:
    snapshot = coordinator.status(agreement_id)
    if snapshot is None:
        raise _not_found(agreement_id)
    return AgreementStatusResponse.from_snapshot(snapshot)


@router.post("/{agreement_id}/secrets", response_model=SubmissionResponse)
async def submit_secret(
    agreement_id: str,
    submission: SecretSubmission,
    coordinator: EscrowCoordinatorDep,
) -> SubmissionResponse:
    """Record a party's secret; the second matching secret triggers the contract."""
    try:
        result = await coordinator.submit_secret(agreement_id, submission.party, submission.secret)
    except AgreementNotFound as err:
        raise _not_found(agreement_id) from err

    match result:
        case Success() as success:
            return SubmissionResponse(
                newly_recorded=success.newly_recorded,
                release_started=success.release_started,
                agreement=AgreementStatusResponse.from_snapshot(success.agreement),
            )
        case IdentityMismatch():
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Secret key does not match your wallet address",
            )
        case RetryableFailure() as failure:
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail=f"Contract creation failed, retry later: {failure.message}",
            )


@router.post("/{agreement_id}/release", response_model=PayoutResponse)
async def release_payments(
    agreement_id: str,
    request: PayoutReleaseRequest,
    coordinator: EscrowCoordinatorDep,
) -> PayoutResponse:
    """Release the agreed split to the payees once the event is over."""
    try:
        result = await coordinator.release_payments(agreement_id, request.secret)
    except AgreementNotFound as err:
        raise _not_found(agreement_id) from err

    match result:
        case PayoutReleased() as released:
            return PayoutResponse(
                agreement_id=released.agreement_id,
                transaction_reference=released.transaction_reference,
                newly_released=released.newly_released,
            )
        case NotReady() as not_ready:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=not_ready.reason)
        case IdentityMismatch():
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Secret key does not match your wallet address",
            )
        case RetryableFailure() as failure:
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail=f"Payment release failed, retry later: {failure.message}",
            )
