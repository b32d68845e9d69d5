# src/passa_gate/services/__init__.py
"""Business logic services for the Passa gate service."""

from .credentials import TicketCredentialService
from .escrow import DualKeyEscrowCoordinator
from .scanner import ScanVerifier

__all__ = [
    "DualKeyEscrowCoordinator",
    "ScanVerifier",
    "TicketCredentialService",
]
