# src/passa_gate/services/scanner.py
"""Gate-side verification of scanned ticket credentials.

Each credential moves UNSEEN -> USED exactly once. The transition is the
ledger insert; every other outcome leaves the ledger untouched.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from passa_gate.db.time import utcnow
from passa_gate.services.codec import (
    CredentialCodec,
    CredentialDecodeError,
    UnsupportedVersion,
)
from passa_gate.services.keys import CredentialKeyRing
from passa_gate.services.replay import ReplayLedger

logger = logging.getLogger(__name__)

_TOKEN_LOG_PREFIX = 16


@dataclass(frozen=True)
class Accepted:
    """First admission of a valid credential."""

    ticket_id: int
    owner_id: int
    event_id: int
    issued_at: datetime
    expires_at: datetime
    scanned_at: datetime
    scanned_by: str


@dataclass(frozen=True)
class AlreadyUsed:
    """The credential was admitted before; `scanned_at` is the original time."""

    ticket_id: int
    event_id: int
    scanned_at: datetime


@dataclass(frozen=True)
class Expired:
    """Signature checks out but the validity window has closed."""

    ticket_id: int
    event_id: int
    expired_at: datetime


@dataclass(frozen=True)
class Forged:
    """Signature does not match the payload bytes."""

    reason: str = "signature mismatch"


@dataclass(frozen=True)
class Invalid:
    """The token cannot be decoded."""

    reason: str


VerificationResult = Accepted | AlreadyUsed | Expired | Forged | Invalid


class ScanVerifier:
    """Validate scanned tokens and consume them in the replay ledger.

    Checks run in this order: token envelope, signature over the exact
    payload bytes, payload structure and version, expiry, then the ledger.
    Verifying the signature before parsing keeps every tampered payload in
    the `Forged` bucket, whatever the mutation does to its structure.
    """

    def __init__(
        self,
        key_ring: CredentialKeyRing,
        ledger: ReplayLedger,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._key_ring = key_ring
        self._ledger = ledger
        self._clock = clock

    def scan(self, token: str, scanned_by: str) -> VerificationResult:
        """Verify `token` for the gate operator `scanned_by`."""
        if not scanned_by or not scanned_by.strip():
            raise ValueError("scanned_by must identify the gate operator")

        try:
            payload, signature = CredentialCodec.unpack_token(token)
        except CredentialDecodeError as err:
            logger.info("Rejected undecodable token from %s: %s", scanned_by, err)
            return Invalid(reason=str(err))

        if not self._key_ring.verify(payload, signature):
            logger.warning(
                "Forged credential presented at gate %s (token prefix %r)",
                scanned_by,
                token[:_TOKEN_LOG_PREFIX],
            )
            return Forged()

        try:
            fields = CredentialCodec.decode(payload)
        except UnsupportedVersion as err:
            logger.info("Rejected credential version %s from %s", err.version, scanned_by)
            return Invalid(reason=str(err))
        except CredentialDecodeError as err:
            logger.error("Signed payload failed to decode at gate %s: %s", scanned_by, err)
            return Invalid(reason=str(err))

        now = self._clock()
        if now.timestamp() > fields.expires_at:
            logger.info("Expired credential for ticket %d at gate %s", fields.ticket_id, scanned_by)
            return Expired(
                ticket_id=fields.ticket_id,
                event_id=fields.event_id,
                expired_at=datetime.fromtimestamp(fields.expires_at, UTC),
            )

        result = self._ledger.consume(
            ticket_id=fields.ticket_id,
            nonce=fields.nonce_hex,
            event_id=fields.event_id,
            owner_id=fields.owner_id,
            scanned_by=scanned_by,
            scanned_at=now,
        )
        if not result.first_use:
            logger.info(
                "Ticket %d already admitted at %s; rejected at gate %s",
                fields.ticket_id,
                result.entry.scanned_at.isoformat(),
                scanned_by,
            )
            return AlreadyUsed(
                ticket_id=fields.ticket_id,
                event_id=fields.event_id,
                scanned_at=result.entry.scanned_at,
            )

        logger.info(
            "Admitted ticket %d for event %d at gate %s",
            fields.ticket_id,
            fields.event_id,
            scanned_by,
        )
        return Accepted(
            ticket_id=fields.ticket_id,
            owner_id=fields.owner_id,
            event_id=fields.event_id,
            issued_at=datetime.fromtimestamp(fields.issued_at, UTC),
            expires_at=datetime.fromtimestamp(fields.expires_at, UTC),
            scanned_at=result.entry.scanned_at,
            scanned_by=scanned_by,
        )
