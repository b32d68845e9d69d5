"""Gate scan Pydantic schemas."""
from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ScanRequest(BaseModel):
    """Token as read by the gate camera plus the operator identity."""

    token: str = Field(..., min_length=1, max_length=2048)
    scanned_by: str = Field(..., min_length=1, max_length=255)


class ScanResponse(BaseModel):
    """Successful admission details for the gate display."""

    status: Literal["accepted"] = "accepted"
    ticket_id: int
    owner_id: int
    event_id: int
    issued_at: datetime
    expires_at: datetime
    scanned_at: datetime
    scanned_by: str


class ScanHistoryEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    ticket_id: int
    owner_id: int
    event_id: int
    scanned_by: str
    scanned_at: datetime


class AttendanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    ticket_id: int
    owner_id: int
    first_scanned_at: datetime
    admissions: int
