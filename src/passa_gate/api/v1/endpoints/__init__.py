# src/passa_gate/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .credentials import router as credentials_router
from .escrow import router as escrow_router
from .scans import router as scans_router

__all__ = [
    "credentials_router",
    "escrow_router",
    "scans_router",
]
