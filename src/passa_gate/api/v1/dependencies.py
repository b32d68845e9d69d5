"""Shared API dependencies wiring services to the request scope.

Long-lived collaborators (key ring, issuance service, agreement directory,
chain client) are created at startup and kept on `app.state`; everything
bound to a database session is built per request.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from passa_gate.db.session import get_db
from passa_gate.services.chain import ChainSubmitter
from passa_gate.services.credentials import TicketCredentialService
from passa_gate.services.directory import AgreementDirectory
from passa_gate.services.escrow import DualKeyEscrowCoordinator
from passa_gate.services.escrow_store import EscrowAgreementStore
from passa_gate.services.keys import CredentialKeyRing
from passa_gate.services.replay import ReplayLedger
from passa_gate.services.scanner import ScanVerifier

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def _state_or_503(request: Request, name: str, label: str) -> object:
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} is not configured",
        )
    return value


def get_key_ring(request: Request) -> CredentialKeyRing:
    """Return the key ring loaded at startup."""
    return _state_or_503(request, "key_ring", "Credential key material")  # type: ignore[return-value]


def get_credential_service(request: Request) -> TicketCredentialService:
    """Return the issuance service; unavailable on verify-only deployments."""
    return _state_or_503(request, "credential_service", "Credential issuance")  # type: ignore[return-value]


def get_agreement_directory(request: Request) -> AgreementDirectory:
    return _state_or_503(request, "agreement_directory", "Agreement directory")  # type: ignore[return-value]


def get_chain_submitter(request: Request) -> ChainSubmitter:
    return _state_or_503(request, "chain_client", "Chain gateway")  # type: ignore[return-value]


KeyRingDep = Annotated[CredentialKeyRing, Depends(get_key_ring)]
DirectoryDep = Annotated[AgreementDirectory, Depends(get_agreement_directory)]
ChainDep = Annotated[ChainSubmitter, Depends(get_chain_submitter)]


def get_replay_ledger(db: SessionDep) -> ReplayLedger:
    return ReplayLedger(db)


def get_scan_verifier(db: SessionDep, key_ring: KeyRingDep) -> ScanVerifier:
    return ScanVerifier(key_ring, ReplayLedger(db))


def get_escrow_coordinator(
    db: SessionDep,
    directory: DirectoryDep,
    chain: ChainDep,
) -> DualKeyEscrowCoordinator:
    return DualKeyEscrowCoordinator(EscrowAgreementStore(db), directory, chain)


CredentialServiceDep = Annotated[TicketCredentialService, Depends(get_credential_service)]
ReplayLedgerDep = Annotated[ReplayLedger, Depends(get_replay_ledger)]
ScanVerifierDep = Annotated[ScanVerifier, Depends(get_scan_verifier)]
EscrowCoordinatorDep = Annotated[DualKeyEscrowCoordinator, Depends(get_escrow_coordinator)]
