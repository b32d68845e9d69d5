# src/passa_gate/models/__init__.py
"""SQLAlchemy models for the Passa gate service."""

from .escrow_agreement import EscrowAgreement
from .scan_record import ScanRecord

__all__ = [
    "EscrowAgreement",
    "ScanRecord",
]
