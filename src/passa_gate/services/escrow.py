# src/passa_gate/services/escrow.py
"""Dual-key escrow coordination.

Each party proves control of its wallet by submitting its secret. Once both
flags are recorded, exactly one caller wins the contract claim and asks the
chain gateway to create the agreement. A failed, timed-out or cancelled
chain call reverts the claim so any later submission can retry, and a claim
left behind by a crashed process is taken over once it is older than
`stale_after`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TypeVar

from passa_gate.core.security import secret_matches_identity
from passa_gate.core.settings import settings
from passa_gate.db.time import utcnow
from passa_gate.services.chain import (
    AgreementSubmission,
    ChainGatewayError,
    ChainSubmitter,
)
from passa_gate.services.directory import AgreementDirectory, AgreementTerms, Party
from passa_gate.services.escrow_store import (
    AgreementSnapshot,
    EscrowAgreementStore,
    ReferenceClaiming,
    ReferenceSet,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Success:
    """The submission is recorded.

    `release_started` is True only for the caller that ran the chain call
    and stored the contract reference.
    """

    agreement: AgreementSnapshot
    newly_recorded: bool
    release_started: bool

    @property
    def contract_reference(self) -> str | None:
        return self.agreement.contract_reference


@dataclass(frozen=True)
class IdentityMismatch:
    """The secret does not belong to the party's registered identity."""

    agreement_id: str
    party: Party


@dataclass(frozen=True)
class RetryableFailure:
    """The chain call failed; the claim was reverted and a retry is safe."""

    agreement_id: str
    message: str


@dataclass(frozen=True)
class PayoutReleased:
    agreement_id: str
    transaction_reference: str
    newly_released: bool


@dataclass(frozen=True)
class NotReady:
    """Payout cannot be released yet."""

    agreement_id: str
    reason: str


SubmissionResult = Success | IdentityMismatch | RetryableFailure
PayoutResult = PayoutReleased | NotReady | IdentityMismatch | RetryableFailure


class DualKeyEscrowCoordinator:
    """Sole owner of escrow agreement transitions."""

    def __init__(
        self,
        store: EscrowAgreementStore,
        directory: AgreementDirectory,
        chain: ChainSubmitter,
        *,
        clock: Callable[[], datetime] = utcnow,
        stale_after: timedelta | None = None,
        chain_timeout: float | None = None,
        token_asset: str | None = None,
        identity_verifier: Callable[[str, str], bool] = secret_matches_identity,
    ) -> None:
        self._store = store
        self._directory = directory
        self._chain = chain
        self._clock = clock
        self._stale_after = stale_after or timedelta(seconds=settings.escrow_claim_stale_seconds)
        self._chain_timeout = chain_timeout
        self._token_asset = token_asset or settings.chain_token_asset
        self._verify_identity = identity_verifier

    def status(self, agreement_id: str) -> AgreementSnapshot | None:
        return self._store.get(agreement_id)

    async def submit_secret(self, agreement_id: str, party: Party, secret: str) -> SubmissionResult:
        """Record a party's secret and trigger the release once both are in.

        Raises:
            AgreementNotFound: If the directory has no terms for the id.
        """
        terms = self._directory.lookup(agreement_id)
        if not self._verify_identity(secret, terms.identity_for(party)):
            logger.warning(
                "Secret for %s does not match the registered identity on %s",
                party.value,
                agreement_id,
            )
            return IdentityMismatch(agreement_id=agreement_id, party=party)

        newly_recorded = self._store.mark_submitted(agreement_id, terms.event_id, party)
        if newly_recorded:
            logger.info("Recorded %s secret for %s", party.value, agreement_id)
        return await self._advance(terms, newly_recorded=newly_recorded)

    async def retry_release(self, agreement_id: str) -> SubmissionResult:
        """Re-attempt contract creation for an agreement with both secrets in."""
        terms = self._directory.lookup(agreement_id)
        return await self._advance(terms, newly_recorded=False)

    async def _advance(self, terms: AgreementTerms, *, newly_recorded: bool) -> SubmissionResult:
        agreement_id = terms.agreement_id
        snapshot = self._store.get(agreement_id)
        if snapshot is None:
            raise RuntimeError(f"Agreement {agreement_id} vanished after submission")
        if not snapshot.both_submitted or isinstance(snapshot.contract, ReferenceSet):
            return Success(agreement=snapshot, newly_recorded=newly_recorded, release_started=False)
        if not terms.payees:
            # Nothing to split until the directory lists recipients.
            logger.warning("Agreement %s has no payees; contract creation deferred", agreement_id)
            return Success(agreement=snapshot, newly_recorded=newly_recorded, release_started=False)

        token = self._store.try_claim_contract(agreement_id, self._clock() - self._stale_after)
        if token is None:
            current = self._store.get(agreement_id) or snapshot
            return Success(agreement=current, newly_recorded=newly_recorded, release_started=False)
        if isinstance(snapshot.contract, ReferenceClaiming):
            logger.warning(
                "Reclaimed stale contract claim on %s from %s",
                agreement_id,
                snapshot.contract.claimed_at.isoformat(),
            )

        submission = AgreementSubmission.from_terms(terms, self._token_asset)
        try:
            result = await self._call_chain(self._chain.create_agreement(submission))
        except (ChainGatewayError, TimeoutError) as exc:
            message = str(exc) or type(exc).__name__
            return self._contract_failed(agreement_id, token, message)
        except asyncio.CancelledError:
            self._store.abandon_contract_claim(agreement_id, token, "contract creation cancelled")
            raise

        if not result.success or not result.contract_reference:
            return self._contract_failed(
                agreement_id, token, result.message or "contract creation failed"
            )

        if not self._store.complete_contract(agreement_id, token, result.contract_reference):
            logger.error(
                "Contract %s created for %s after the claim was taken over",
                result.contract_reference,
                agreement_id,
            )
            return RetryableFailure(agreement_id=agreement_id, message="contract claim lost")

        logger.info("Contract %s created for %s", result.contract_reference, agreement_id)
        final = self._store.get(agreement_id) or snapshot
        return Success(agreement=final, newly_recorded=newly_recorded, release_started=True)

    def _contract_failed(self, agreement_id: str, token: str, message: str) -> RetryableFailure:
        logger.error("Contract creation failed for %s: %s", agreement_id, message)
        self._store.abandon_contract_claim(agreement_id, token, message)
        return RetryableFailure(agreement_id=agreement_id, message=message)

    async def release_payments(self, agreement_id: str, secret: str) -> PayoutResult:
        """Release the agreed split to the payees after the event.

        Only the organizer may release. Runs the chain call at most once per
        agreement; repeated calls after success report the stored reference.

        Raises:
            AgreementNotFound: If the directory has no terms for the id.
        """
        terms = self._directory.lookup(agreement_id)
        if not self._verify_identity(secret, terms.organizer_identity):
            logger.warning("Payout release on %s refused: organizer identity mismatch", agreement_id)
            return IdentityMismatch(agreement_id=agreement_id, party=Party.ORGANIZER)

        snapshot = self._store.get(agreement_id)
        if snapshot is None or snapshot.contract_reference is None:
            return NotReady(agreement_id=agreement_id, reason="no contract for this agreement")
        if isinstance(snapshot.payout, ReferenceSet):
            return PayoutReleased(
                agreement_id=agreement_id,
                transaction_reference=snapshot.payout.reference,
                newly_released=False,
            )
        if self._clock() < terms.deadline:
            return NotReady(agreement_id=agreement_id, reason="event has not completed yet")

        token = self._store.try_claim_payout(agreement_id, self._clock() - self._stale_after)
        if token is None:
            return NotReady(agreement_id=agreement_id, reason="payout release already in progress")

        try:
            result = await self._call_chain(
                self._chain.release_payments(agreement_id, snapshot.contract_reference)
            )
        except (ChainGatewayError, TimeoutError) as exc:
            message = str(exc) or type(exc).__name__
            return self._payout_failed(agreement_id, token, message)
        except asyncio.CancelledError:
            self._store.abandon_payout_claim(agreement_id, token, "payout release cancelled")
            raise

        if not result.success or not result.transaction_reference:
            return self._payout_failed(agreement_id, token, result.message or "payout release failed")

        if not self._store.complete_payout(agreement_id, token, result.transaction_reference):
            logger.error(
                "Payout %s sent for %s after the claim was taken over",
                result.transaction_reference,
                agreement_id,
            )
            return RetryableFailure(agreement_id=agreement_id, message="payout claim lost")

        logger.info("Payout %s released for %s", result.transaction_reference, agreement_id)
        return PayoutReleased(
            agreement_id=agreement_id,
            transaction_reference=result.transaction_reference,
            newly_released=True,
        )

    def _payout_failed(self, agreement_id: str, token: str, message: str) -> RetryableFailure:
        logger.error("Payout release failed for %s: %s", agreement_id, message)
        self._store.abandon_payout_claim(agreement_id, token, message)
        return RetryableFailure(agreement_id=agreement_id, message=message)

    async def _call_chain(self, call: Awaitable[T]) -> T:
        if self._chain_timeout is None:
            return await call
        return await asyncio.wait_for(call, timeout=self._chain_timeout)
