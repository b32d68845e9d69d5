# src/passa_gate/main.py
"""Main entry point for the Passa gate service."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from passa_gate.api.v1 import credentials_router, escrow_router, scans_router
from passa_gate.core.settings import settings
from passa_gate.services.chain import ChainGatewayClient
from passa_gate.services.credentials import TicketCredentialService
from passa_gate.services.directory import InMemoryAgreementDirectory
from passa_gate.services.keys import load_key_ring

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Passa Gate API",
    description="Ticket QR credentials, gate verification and dual-key escrow release",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Include API routers
app.include_router(credentials_router, prefix="/api/v1")
app.include_router(scans_router, prefix="/api/v1")
app.include_router(escrow_router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup() -> None:
    # Missing key material is fatal here rather than per request.
    key_ring = load_key_ring()
    app.state.key_ring = key_ring
    app.state.credential_service = (
        TicketCredentialService(key_ring) if key_ring.can_sign else None
    )
    if not key_ring.can_sign:
        logger.info("No signing key configured; running as a verify-only gate")

    if getattr(app.state, "agreement_directory", None) is None:
        app.state.agreement_directory = InMemoryAgreementDirectory()
    app.state.chain_client = ChainGatewayClient()
    if not app.state.chain_client.enabled:
        logger.warning("CHAIN_GATEWAY_BASE_URL is not set; escrow releases will fail")


@app.on_event("shutdown")
async def on_shutdown() -> None:
    client: ChainGatewayClient | None = getattr(app.state, "chain_client", None)
    if client is not None:
        await client.close()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("passa_gate.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
