"""Escrow agreement Pydantic schemas."""
from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from passa_gate.services.directory import Party
from passa_gate.services.escrow_store import (
    AgreementSnapshot,
    ClaimState,
    ReferenceClaiming,
    ReferenceEmpty,
    ReferenceSet,
)

ClaimLabel = Literal["empty", "claiming", "set"]


def _claim_label(state: ClaimState) -> ClaimLabel:
    match state:
        case ReferenceEmpty():
            return "empty"
        case ReferenceClaiming():
            return "claiming"
        case ReferenceSet():
            return "set"


class SecretSubmission(BaseModel):
    party: Party
    secret: str = Field(..., min_length=1, max_length=128)


class PayoutReleaseRequest(BaseModel):
    secret: str = Field(..., min_length=1, max_length=128)


class AgreementStatusResponse(BaseModel):
    """Public view of an agreement; never includes secrets."""

    agreement_id: str
    event_id: int
    organizer_secret_submitted: bool
    artist_secret_submitted: bool
    release_triggered: bool
    contract_state: ClaimLabel
    contract_reference: str | None
    payout_state: ClaimLabel
    payout_reference: str | None
    last_error: str | None
    updated_at: datetime

    @classmethod
    def from_snapshot(cls, snapshot: AgreementSnapshot) -> AgreementStatusResponse:
        return cls(
            agreement_id=snapshot.agreement_id,
            event_id=snapshot.event_id,
            organizer_secret_submitted=snapshot.organizer_secret_submitted,
            artist_secret_submitted=snapshot.artist_secret_submitted,
            release_triggered=snapshot.release_triggered,
            contract_state=_claim_label(snapshot.contract),
            contract_reference=snapshot.contract_reference,
            payout_state=_claim_label(snapshot.payout),
            payout_reference=snapshot.payout_reference,
            last_error=snapshot.last_error,
            updated_at=snapshot.updated_at,
        )


class SubmissionResponse(BaseModel):
    newly_recorded: bool
    release_started: bool
    agreement: AgreementStatusResponse


class PayoutResponse(BaseModel):
    agreement_id: str
    transaction_reference: str
    newly_released: bool
