# src/passa_gate/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import credentials_router, escrow_router, scans_router

__all__ = [
    "credentials_router",
    "escrow_router",
    "scans_router",
]
