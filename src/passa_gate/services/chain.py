"""Chain gateway client for escrow agreement creation and payout release.

The gateway fronts the splitter contract: it builds, signs and submits the
ledger transactions. This module only speaks its HTTP API and models the
results; callers treat it as an opaque collaborator.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal
from typing import Any, Final, Protocol

import httpx
from jose import jwt

from passa_gate.core.settings import settings
from passa_gate.services.directory import AgreementTerms

# Configure logger for this module
logger = logging.getLogger(__name__)

STROOPS_PER_UNIT: Final[Decimal] = Decimal(10_000_000)
HTTP_INTERNAL_SERVER_ERROR: Final[int] = 500


class ChainGatewayError(RuntimeError):
    """Base exception raised for gateway transport or server failures."""


class ChainGatewayDisabledError(ChainGatewayError):
    """Raised when chain operations are attempted without a gateway URL."""


@dataclass(frozen=True)
class ChainGatewayConfig:
    """Immutable configuration for gateway operations."""

    base_url: str | None
    instance_id: str
    shared_secret: str | None
    audience: str
    token_ttl_seconds: int
    timeout_seconds: float
    token_asset: str


@dataclass(frozen=True)
class AgreementSubmission:
    """Payload for creating the on-chain agreement."""

    agreement_id: str
    payer_address: str
    token_asset: str
    payees: tuple[tuple[str, int], ...]
    budget_stroops: int
    deadline: int

    @classmethod
    def from_terms(cls, terms: AgreementTerms, token_asset: str) -> AgreementSubmission:
        return cls(
            agreement_id=terms.agreement_id,
            payer_address=terms.payer_address,
            token_asset=token_asset,
            payees=tuple(
                (payee.address, to_stroops(payee.fixed_amount)) for payee in terms.payees
            ),
            budget_stroops=to_stroops(terms.budget),
            deadline=int(terms.deadline.timestamp()),
        )


@dataclass(frozen=True)
class CreateAgreementResult:
    success: bool
    contract_reference: str | None = None
    transaction_reference: str | None = None
    message: str | None = None


@dataclass(frozen=True)
class ReleasePaymentsResult:
    success: bool
    transaction_reference: str | None = None
    message: str | None = None


class ChainSubmitter(Protocol):
    """What the escrow coordinator needs from the chain."""

    async def create_agreement(self, submission: AgreementSubmission) -> CreateAgreementResult:
        ...

    async def release_payments(
        self, agreement_id: str, contract_reference: str
    ) -> ReleasePaymentsResult:
        ...


def to_stroops(amount: Decimal) -> int:
    """Convert a token amount to stroops, truncating sub-stroop precision."""
    if amount < 0:
        raise ValueError("Amounts must not be negative")
    return int((amount * STROOPS_PER_UNIT).to_integral_value(rounding=ROUND_DOWN))


def load_chain_config() -> ChainGatewayConfig:
    """Build configuration object from global settings."""

    return ChainGatewayConfig(
        base_url=settings.chain_gateway_base_url,
        instance_id=settings.chain_gateway_instance_id,
        shared_secret=settings.chain_gateway_shared_secret,
        audience=settings.chain_gateway_audience,
        token_ttl_seconds=settings.chain_gateway_token_ttl_seconds,
        timeout_seconds=float(settings.chain_gateway_timeout_seconds),
        token_asset=settings.chain_token_asset,
    )


class ChainGatewayClient:
    """HTTP client wrapper for the chain gateway."""

    def __init__(
        self,
        config: ChainGatewayConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or load_chain_config()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    @property
    def enabled(self) -> bool:
        return bool(self.config.base_url)

    async def _ensure_client(self) -> httpx.AsyncClient:
        if not self.enabled:
            raise ChainGatewayDisabledError("Chain gateway is not configured")

        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.config.base_url or "",
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                    transport=self._transport,
                )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _build_auth_headers(self, *, idempotency_key: str | None = None) -> dict[str, str]:
        headers = {
            "X-Passa-Instance-Id": self.config.instance_id,
        }

        if self.config.shared_secret:
            now = int(time.time())
            payload = {
                "iss": self.config.instance_id,
                "aud": self.config.audience,
                "iat": now,
                "exp": now + max(1, self.config.token_ttl_seconds),
                "jti": secrets.token_hex(8),
            }
            token = jwt.encode(payload, self.config.shared_secret, algorithm="HS256")
            headers["Authorization"] = f"Bearer {token}"

        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key

        return headers

    async def _post(self, path: str, body: dict[str, Any], *, idempotency_key: str) -> dict[str, Any]:
        client = await self._ensure_client()
        try:
            response = await client.post(
                path,
                json=body,
                headers=self._build_auth_headers(idempotency_key=idempotency_key),
            )
        except httpx.HTTPError as exc:
            logger.warning("Chain gateway POST %s failed: %s", path, exc)
            raise ChainGatewayError(f"Chain gateway request failed: {exc}") from exc

        if response.status_code >= HTTP_INTERNAL_SERVER_ERROR:
            raise ChainGatewayError(f"Chain gateway responded with {response.status_code}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise ChainGatewayError("Chain gateway returned a non-JSON body") from exc
        if not isinstance(payload, dict):
            raise ChainGatewayError("Chain gateway returned an unexpected body")
        if response.is_error:
            # 4xx: the gateway rejected the request; report it as a failed result.
            payload.setdefault("success", False)
            payload.setdefault("message", f"Chain gateway rejected request ({response.status_code})")
        return payload

    async def create_agreement(self, submission: AgreementSubmission) -> CreateAgreementResult:
        """Create the splitter agreement for an event."""
        body = {
            "agreement_id": submission.agreement_id,
            "payer": submission.payer_address,
            "token": submission.token_asset,
            "payees": [
                {"recipient": address, "fixed_amount": amount}
                for address, amount in submission.payees
            ],
            "budget": submission.budget_stroops,
            "deadline": submission.deadline,
            "approvers": [],
        }
        payload = await self._post(
            "/api/agreements",
            body,
            idempotency_key=f"create:{submission.agreement_id}",
        )
        return CreateAgreementResult(
            success=bool(payload.get("success")),
            contract_reference=payload.get("contract_reference"),
            transaction_reference=payload.get("transaction_reference"),
            message=payload.get("message"),
        )

    async def release_payments(
        self, agreement_id: str, contract_reference: str
    ) -> ReleasePaymentsResult:
        """Release the default split of an agreement to its payees."""
        payload = await self._post(
            f"/api/agreements/{agreement_id}/release",
            {"contract_reference": contract_reference},
            idempotency_key=f"release:{agreement_id}",
        )
        return ReleasePaymentsResult(
            success=bool(payload.get("success")),
            transaction_reference=payload.get("transaction_reference"),
            message=payload.get("message"),
        )
