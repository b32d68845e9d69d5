# src/passa_gate/api/v1/endpoints/scans.py
"""Gate scan endpoints and per-event admission reports."""

from fastapi import APIRouter, HTTPException, Query, status

from passa_gate.api.v1.dependencies import ReplayLedgerDep, ScanVerifierDep
from passa_gate.schemas.scan import (
    AttendanceResponse,
    ScanHistoryEntry,
    ScanRequest,
    ScanResponse,
)
from passa_gate.services.scanner import Accepted, AlreadyUsed, Expired, Forged, Invalid

router = APIRouter(tags=["scans"])


@router.post("/scans", response_model=ScanResponse)
async def scan_ticket(request: ScanRequest, verifier: ScanVerifierDep) -> ScanResponse:
    """Verify a scanned token and admit the holder on first use.

    Rejections carry a structured `detail` with a `status` discriminator.
    """
    match verifier.scan(request.token, request.scanned_by):
        case Accepted() as accepted:
            return ScanResponse(
                ticket_id=accepted.ticket_id,
                owner_id=accepted.owner_id,
                event_id=accepted.event_id,
                issued_at=accepted.issued_at,
                expires_at=accepted.expires_at,
                scanned_at=accepted.scanned_at,
                scanned_by=accepted.scanned_by,
            )
        case AlreadyUsed() as used:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={
                    "status": "already_used",
                    "message": "Ticket already used",
                    "ticket_id": used.ticket_id,
                    "event_id": used.event_id,
                    "scanned_at": used.scanned_at.isoformat(),
                },
            )
        case Expired() as expired:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={
                    "status": "expired",
                    "message": "QR code expired; ask the holder to re-issue their ticket",
                    "ticket_id": expired.ticket_id,
                    "expired_at": expired.expired_at.isoformat(),
                },
            )
        case Forged():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"status": "forged", "message": "Invalid signature"},
            )
        case Invalid() as invalid:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"status": "invalid", "message": invalid.reason},
            )


@router.get("/events/{event_id}/scans", response_model=list[ScanHistoryEntry])
async def get_scan_history(
    event_id: int,
    ledger: ReplayLedgerDep,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
) -> list[ScanHistoryEntry]:
    """Return admissions for an event, newest first."""
    return [
        ScanHistoryEntry.model_validate(entry)
        for entry in ledger.history(event_id, limit=limit, offset=offset)
    ]


@router.get("/events/{event_id}/attendance", response_model=list[AttendanceResponse])
async def get_attendance(event_id: int, ledger: ReplayLedgerDep) -> list[AttendanceResponse]:
    """Return the tickets admitted to an event."""
    return [AttendanceResponse.model_validate(entry) for entry in ledger.attendance(event_id)]
