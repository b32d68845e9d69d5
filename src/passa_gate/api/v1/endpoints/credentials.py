# src/passa_gate/api/v1/endpoints/credentials.py
"""Ticket credential issuance endpoint."""

from datetime import timedelta

from fastapi import APIRouter, HTTPException, status

from passa_gate.api.v1.dependencies import CredentialServiceDep
from passa_gate.schemas.credential import CredentialIssueRequest, CredentialResponse

router = APIRouter(prefix="/credentials", tags=["credentials"])


@router.post("", response_model=CredentialResponse, status_code=status.HTTP_201_CREATED)
async def issue_credential(
    request: CredentialIssueRequest,
    service: CredentialServiceDep,
) -> CredentialResponse:
    """Issue a signed QR credential for a purchased ticket."""
    ttl = timedelta(hours=request.ttl_hours) if request.ttl_hours is not None else None
    try:
        credential = service.issue(request.ticket_id, request.owner_id, request.event_id, ttl)
    except ValueError as err:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(err)) from err

    return CredentialResponse(
        token=credential.token,
        ticket_id=credential.ticket_id,
        owner_id=credential.owner_id,
        event_id=credential.event_id,
        issued_at=credential.issued_at,
        expires_at=credential.expires_at,
    )
