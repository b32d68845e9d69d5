# src/passa_gate/services/escrow_store.py
"""Atomic storage primitives for escrow agreements.

Every transition is a single conditional UPDATE (compare-and-swap) or a
unique-key INSERT, judged by its row count. Nothing here reads a row and
then writes based on what it saw.
"""

from __future__ import annotations

import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import false, select, true, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import InstrumentedAttribute, Session

from passa_gate.db.time import as_utc, utcnow
from passa_gate.models import EscrowAgreement
from passa_gate.services.directory import Party

_CLAIM_TOKEN_BYTES = 16
_MAX_ERROR_LENGTH = 1000


@dataclass(frozen=True)
class ReferenceEmpty:
    """No chain call has succeeded and nobody holds the claim."""


@dataclass(frozen=True)
class ReferenceClaiming:
    """A caller holds the claim and is talking to the chain."""

    claimed_at: datetime


@dataclass(frozen=True)
class ReferenceSet:
    """The chain call succeeded; `reference` is its result."""

    reference: str


ClaimState = ReferenceEmpty | ReferenceClaiming | ReferenceSet


@dataclass(frozen=True)
class _ClaimColumns:
    reference: InstrumentedAttribute[Any]
    token: InstrumentedAttribute[Any]
    claimed_at: InstrumentedAttribute[Any]


_CONTRACT = _ClaimColumns(
    reference=EscrowAgreement.contract_reference,
    token=EscrowAgreement.claim_token,
    claimed_at=EscrowAgreement.claimed_at,
)
_PAYOUT = _ClaimColumns(
    reference=EscrowAgreement.payout_reference,
    token=EscrowAgreement.payout_claim_token,
    claimed_at=EscrowAgreement.payout_claimed_at,
)

_PARTY_FLAGS: dict[Party, InstrumentedAttribute[bool]] = {
    Party.ARTIST: EscrowAgreement.artist_secret_submitted,
    Party.ORGANIZER: EscrowAgreement.organizer_secret_submitted,
}


def _claim_state(reference: str | None, token: str | None, claimed_at: datetime | None) -> ClaimState:
    if reference is not None:
        return ReferenceSet(reference=reference)
    if token is not None and claimed_at is not None:
        return ReferenceClaiming(claimed_at=as_utc(claimed_at))
    return ReferenceEmpty()


@dataclass(frozen=True)
class AgreementSnapshot:
    """Point-in-time view of an escrow agreement."""

    agreement_id: str
    event_id: int
    organizer_secret_submitted: bool
    artist_secret_submitted: bool
    release_triggered: bool
    contract: ClaimState
    payout: ClaimState
    last_error: str | None
    updated_at: datetime

    @property
    def both_submitted(self) -> bool:
        return self.organizer_secret_submitted and self.artist_secret_submitted

    @property
    def contract_reference(self) -> str | None:
        return self.contract.reference if isinstance(self.contract, ReferenceSet) else None

    @property
    def payout_reference(self) -> str | None:
        return self.payout.reference if isinstance(self.payout, ReferenceSet) else None

    @classmethod
    def from_row(cls, row: EscrowAgreement) -> AgreementSnapshot:
        return cls(
            agreement_id=row.agreement_id,
            event_id=row.event_id,
            organizer_secret_submitted=row.organizer_secret_submitted,
            artist_secret_submitted=row.artist_secret_submitted,
            release_triggered=row.release_triggered,
            contract=_claim_state(row.contract_reference, row.claim_token, row.claimed_at),
            payout=_claim_state(row.payout_reference, row.payout_claim_token, row.payout_claimed_at),
            last_error=row.last_error,
            updated_at=as_utc(row.updated_at),
        )


class EscrowAgreementStore:
    """Sole writer of `escrow_agreements`. Each method commits its own change."""

    def __init__(self, db: Session, *, clock: Callable[[], datetime] = utcnow) -> None:
        self._db = db
        self._clock = clock

    def get(self, agreement_id: str) -> AgreementSnapshot | None:
        row = self._db.execute(
            select(EscrowAgreement)
            .where(EscrowAgreement.agreement_id == agreement_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        snapshot = AgreementSnapshot.from_row(row) if row is not None else None
        # End the read transaction so the next conditional write starts fresh.
        self._db.commit()
        return snapshot

    def _ensure(self, agreement_id: str, event_id: int) -> None:
        self._db.add(
            EscrowAgreement(
                agreement_id=agreement_id,
                event_id=event_id,
                organizer_secret_submitted=False,
                artist_secret_submitted=False,
                release_triggered=False,
                updated_at=self._clock(),
            )
        )
        try:
            self._db.commit()
        except IntegrityError:
            # Another submission created the row first.
            self._db.rollback()

    def _update(self, agreement_id: str, *conditions: Any, **values: Any) -> bool:
        values["updated_at"] = self._clock()
        result = self._db.execute(
            update(EscrowAgreement)
            .where(EscrowAgreement.agreement_id == agreement_id, *conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        self._db.commit()
        return result.rowcount == 1

    def mark_submitted(self, agreement_id: str, event_id: int, party: Party) -> bool:
        """Set the party's flag, creating the row if needed.

        Returns:
            True if the flag changed, False if it was already set.
        """
        flag = _PARTY_FLAGS[party]
        if self._update(agreement_id, flag == false(), **{flag.key: True}):
            return True
        if self.get(agreement_id) is None:
            self._ensure(agreement_id, event_id)
            return self._update(agreement_id, flag == false(), **{flag.key: True})
        return False

    def _try_claim(
        self,
        agreement_id: str,
        columns: _ClaimColumns,
        stale_before: datetime,
        *preconditions: Any,
    ) -> str | None:
        token = secrets.token_hex(_CLAIM_TOKEN_BYTES)
        claimed = self._update(
            agreement_id,
            *preconditions,
            columns.reference.is_(None),
            (columns.token.is_(None)) | (columns.claimed_at < stale_before),
            **{columns.token.key: token, columns.claimed_at.key: self._clock()},
        )
        return token if claimed else None

    def try_claim_contract(self, agreement_id: str, stale_before: datetime) -> str | None:
        """Claim contract creation if both secrets are in and nothing is set.

        A claim older than `stale_before` is treated as abandoned and taken
        over. Returns the claim token, or None if another caller holds it.
        """
        return self._try_claim(
            agreement_id,
            _CONTRACT,
            stale_before,
            EscrowAgreement.organizer_secret_submitted == true(),
            EscrowAgreement.artist_secret_submitted == true(),
        )

    def complete_contract(self, agreement_id: str, token: str, reference: str) -> bool:
        """Store the contract reference if `token` still holds the claim."""
        return self._update(
            agreement_id,
            EscrowAgreement.claim_token == token,
            contract_reference=reference,
            claim_token=None,
            claimed_at=None,
            release_triggered=True,
            last_error=None,
        )

    def abandon_contract_claim(self, agreement_id: str, token: str, error: str) -> bool:
        """Revert to Empty so a later submission can retry."""
        return self._update(
            agreement_id,
            EscrowAgreement.claim_token == token,
            claim_token=None,
            claimed_at=None,
            last_error=error[:_MAX_ERROR_LENGTH],
        )

    def try_claim_payout(self, agreement_id: str, stale_before: datetime) -> str | None:
        """Claim the payment release once the contract reference is set."""
        return self._try_claim(
            agreement_id,
            _PAYOUT,
            stale_before,
            EscrowAgreement.contract_reference.is_not(None),
        )

    def complete_payout(self, agreement_id: str, token: str, reference: str) -> bool:
        return self._update(
            agreement_id,
            EscrowAgreement.payout_claim_token == token,
            payout_reference=reference,
            payout_claim_token=None,
            payout_claimed_at=None,
            last_error=None,
        )

    def abandon_payout_claim(self, agreement_id: str, token: str, error: str) -> bool:
        return self._update(
            agreement_id,
            EscrowAgreement.payout_claim_token == token,
            payout_claim_token=None,
            payout_claimed_at=None,
            last_error=error[:_MAX_ERROR_LENGTH],
        )
