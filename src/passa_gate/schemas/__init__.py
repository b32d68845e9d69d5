# src/passa_gate/schemas/__init__.py
"""Pydantic schemas for request/response validation."""

from .credential import CredentialIssueRequest, CredentialResponse
from .escrow import (
    AgreementStatusResponse,
    PayoutReleaseRequest,
    PayoutResponse,
    SecretSubmission,
    SubmissionResponse,
)
from .scan import AttendanceResponse, ScanHistoryEntry, ScanRequest, ScanResponse

__all__ = [
    "AgreementStatusResponse",
    "AttendanceResponse",
    "CredentialIssueRequest",
    "CredentialResponse",
    "PayoutReleaseRequest",
    "PayoutResponse",
    "ScanHistoryEntry",
    "ScanRequest",
    "ScanResponse",
    "SecretSubmission",
    "SubmissionResponse",
]
