"""Credential issuance Pydantic schemas."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from passa_gate.services.codec import MAX_FIELD_VALUE


class CredentialIssueRequest(BaseModel):
    """Ticket identity from the purchase flow."""

    ticket_id: int = Field(..., ge=0, le=MAX_FIELD_VALUE)
    owner_id: int = Field(..., ge=0, le=MAX_FIELD_VALUE)
    event_id: int = Field(..., ge=0, le=MAX_FIELD_VALUE)
    ttl_hours: int | None = Field(
        default=None,
        gt=0,
        le=24 * 14,
        description="Validity window in hours; defaults to the configured TTL.",
    )


class CredentialResponse(BaseModel):
    """Opaque token to be rendered into the ticket QR image."""

    token: str
    ticket_id: int
    owner_id: int
    event_id: int
    issued_at: datetime
    expires_at: datetime
