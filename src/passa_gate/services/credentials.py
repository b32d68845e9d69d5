# src/passa_gate/services/credentials.py
"""Issuance of signed, expiring ticket credentials."""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from passa_gate.core.settings import settings
from passa_gate.db.time import utcnow
from passa_gate.services.codec import MIN_NONCE_BYTES, CredentialCodec, CredentialFields
from passa_gate.services.keys import CredentialKeyRing, KeyUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TicketCredential:
    """A signed credential and the opaque token that carries it."""

    fields: CredentialFields
    signature: bytes
    token: str

    @property
    def ticket_id(self) -> int:
        return self.fields.ticket_id

    @property
    def owner_id(self) -> int:
        return self.fields.owner_id

    @property
    def event_id(self) -> int:
        return self.fields.event_id

    @property
    def issued_at(self) -> datetime:
        return datetime.fromtimestamp(self.fields.issued_at, UTC)

    @property
    def expires_at(self) -> datetime:
        return datetime.fromtimestamp(self.fields.expires_at, UTC)


class TicketCredentialService:
    """Issue QR credentials for purchased tickets.

    Issuance is stateless: nothing is persisted until the credential is
    first admitted at a gate.
    """

    def __init__(
        self,
        key_ring: CredentialKeyRing,
        *,
        default_ttl: timedelta | None = None,
        clock: Callable[[], datetime] = utcnow,
        nonce_bytes: int = MIN_NONCE_BYTES,
    ) -> None:
        if not key_ring.can_sign:
            raise KeyUnavailable("Credential issuance requires a signing key")
        if nonce_bytes < MIN_NONCE_BYTES:
            raise ValueError(f"nonce_bytes must be at least {MIN_NONCE_BYTES}")
        self._key_ring = key_ring
        self._default_ttl = default_ttl or timedelta(hours=settings.ticket_credential_ttl_hours)
        self._clock = clock
        self._nonce_bytes = nonce_bytes

    @property
    def default_ttl(self) -> timedelta:
        return self._default_ttl

    def issue(
        self,
        ticket_id: int,
        owner_id: int,
        event_id: int,
        ttl: timedelta | None = None,
    ) -> TicketCredential:
        """Issue a fresh credential for a ticket.

        Args:
            ticket_id: Purchased ticket identifier.
            owner_id: Identifier of the ticket holder.
            event_id: Event the ticket admits to.
            ttl: Validity window; defaults to the configured TTL.

        Returns:
            The signed credential, including its transport token.

        Raises:
            KeyUnavailable: If signing key material is missing.
            ValueError: If identifiers are negative or the TTL is not positive.
        """
        ttl = self._default_ttl if ttl is None else ttl
        ttl_seconds = int(ttl.total_seconds())
        if ttl_seconds <= 0:
            raise ValueError("Credential TTL must be at least one second")

        issued_at = int(self._clock().timestamp())
        fields = CredentialFields(
            ticket_id=ticket_id,
            owner_id=owner_id,
            event_id=event_id,
            issued_at=issued_at,
            expires_at=issued_at + ttl_seconds,
            nonce=secrets.token_bytes(self._nonce_bytes),
        )
        payload = CredentialCodec.encode(fields)
        signature = self._key_ring.sign(payload)
        token = CredentialCodec.pack_token(payload, signature)

        logger.debug(
            "Issued credential for ticket %d (event %d) expiring at %d",
            ticket_id,
            event_id,
            fields.expires_at,
        )
        return TicketCredential(fields=fields, signature=signature, token=token)
