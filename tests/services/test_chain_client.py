"""Tests for the chain gateway HTTP client."""

import json
from datetime import UTC, datetime
from decimal import Decimal

import httpx
import pytest
from jose import jwt

from passa_gate.services.chain import (
    AgreementSubmission,
    ChainGatewayClient,
    ChainGatewayConfig,
    ChainGatewayDisabledError,
    ChainGatewayError,
    to_stroops,
)
from passa_gate.services.directory import AgreementTerms, Payee

SHARED_SECRET = "gateway-shared-secret"


def _config(**overrides) -> ChainGatewayConfig:
    values = dict(
        base_url="https://gateway.test",
        instance_id="gate-1",
        shared_secret=SHARED_SECRET,
        audience="passa-chain-gateway",
        token_ttl_seconds=60,
        timeout_seconds=5.0,
        token_asset="native",
    )
    values.update(overrides)
    return ChainGatewayConfig(**values)


def _submission() -> AgreementSubmission:
    terms = AgreementTerms(
        agreement_id="event_9",
        event_id=9,
        organizer_identity="00" * 32,
        artist_identity="11" * 32,
        payer_address="GPAYER",
        budget=Decimal("100"),
        deadline=datetime(2026, 11, 1, tzinfo=UTC),
        payees=(Payee(address="GARTIST", fixed_amount=Decimal("0.00000019")),),
    )
    return AgreementSubmission.from_terms(terms, "native")


def _client(handler) -> ChainGatewayClient:
    return ChainGatewayClient(_config(), transport=httpx.MockTransport(handler))


def test_to_stroops_truncates_sub_stroop_precision() -> None:
    assert to_stroops(Decimal("1")) == 10_000_000
    assert to_stroops(Decimal("0.00000019")) == 1
    with pytest.raises(ValueError):
        to_stroops(Decimal("-1"))


def test_submission_from_terms() -> None:
    submission = _submission()
    assert submission.budget_stroops == 1_000_000_000
    assert submission.payees == (("GARTIST", 1),)
    assert submission.deadline == int(datetime(2026, 11, 1, tzinfo=UTC).timestamp())


@pytest.mark.asyncio
async def test_create_agreement_posts_signed_request() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={"success": True, "contract_reference": "CABC", "transaction_reference": "tx1"},
        )

    client = _client(handler)
    result = await client.create_agreement(_submission())
    await client.close()

    assert result.success is True
    assert result.contract_reference == "CABC"
    request = seen[0]
    assert request.url.path == "/api/agreements"
    assert request.headers["Idempotency-Key"] == "create:event_9"
    assert request.headers["X-Passa-Instance-Id"] == "gate-1"
    token = request.headers["Authorization"].removeprefix("Bearer ")
    claims = jwt.decode(token, SHARED_SECRET, algorithms=["HS256"], audience="passa-chain-gateway")
    assert claims["iss"] == "gate-1"
    body = json.loads(request.content)
    assert body["payees"] == [{"recipient": "GARTIST", "fixed_amount": 1}]
    assert body["budget"] == 1_000_000_000


@pytest.mark.asyncio
async def test_release_payments_uses_release_endpoint() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"success": True, "transaction_reference": "tx2"})

    client = _client(handler)
    result = await client.release_payments("event_9", "CABC")

    assert result.transaction_reference == "tx2"
    assert seen[0].url.path == "/api/agreements/event_9/release"
    assert seen[0].headers["Idempotency-Key"] == "release:event_9"
    assert json.loads(seen[0].content) == {"contract_reference": "CABC"}


@pytest.mark.asyncio
async def test_server_error_raises() -> None:
    client = _client(lambda request: httpx.Response(503, json={"detail": "busy"}))
    with pytest.raises(ChainGatewayError):
        await client.create_agreement(_submission())


@pytest.mark.asyncio
async def test_client_error_is_a_failed_result() -> None:
    client = _client(lambda request: httpx.Response(422, json={"message": "budget too low"}))

    result = await client.create_agreement(_submission())

    assert result.success is False
    assert result.message == "budget too low"


@pytest.mark.asyncio
async def test_non_json_body_raises() -> None:
    client = _client(lambda request: httpx.Response(200, text="<html>"))
    with pytest.raises(ChainGatewayError):
        await client.create_agreement(_submission())


@pytest.mark.asyncio
async def test_transport_error_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler)
    with pytest.raises(ChainGatewayError):
        await client.create_agreement(_submission())


@pytest.mark.asyncio
async def test_disabled_client_refuses_calls() -> None:
    client = ChainGatewayClient(_config(base_url=None))

    assert client.enabled is False
    with pytest.raises(ChainGatewayDisabledError):
        await client.create_agreement(_submission())


def test_headers_omit_authorization_without_secret() -> None:
    client = ChainGatewayClient(_config(shared_secret=None))
    headers = client._build_auth_headers(idempotency_key="create:event_9")

    assert "Authorization" not in headers
    assert headers["Idempotency-Key"] == "create:event_9"
