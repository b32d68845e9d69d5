"""Tests for gate-side credential verification."""

import base64
from datetime import timedelta

import pytest

from passa_gate.services.codec import CredentialCodec
from passa_gate.services.replay import ReplayLedger
from passa_gate.services.scanner import (
    Accepted,
    AlreadyUsed,
    Expired,
    Forged,
    Invalid,
    ScanVerifier,
)


@pytest.fixture
def verifier(key_ring, db_session, clock) -> ScanVerifier:
    return ScanVerifier(key_ring, ReplayLedger(db_session), clock=clock)


def _flip_payload_bit(token: str, byte_index: int = 3) -> str:
    payload, signature = CredentialCodec.unpack_token(token)
    mutated = bytearray(payload)
    mutated[byte_index] ^= 0x01
    return CredentialCodec.pack_token(bytes(mutated), signature)


def test_first_scan_is_accepted_then_already_used(credential_service, verifier, clock) -> None:
    credential = credential_service.issue(42, 7, 3)

    first = verifier.scan(credential.token, "gate-a")
    assert isinstance(first, Accepted)
    assert (first.ticket_id, first.owner_id, first.event_id) == (42, 7, 3)
    assert first.scanned_at == clock.now
    assert first.scanned_by == "gate-a"

    clock.advance(timedelta(minutes=5))
    second = verifier.scan(credential.token, "gate-b")
    assert isinstance(second, AlreadyUsed)
    assert second.ticket_id == 42
    assert second.scanned_at == first.scanned_at


def test_expired_credential_is_rejected(credential_service, verifier, clock, db_session) -> None:
    credential = credential_service.issue(42, 7, 3)
    clock.advance(timedelta(hours=25))

    result = verifier.scan(credential.token, "gate-a")

    assert isinstance(result, Expired)
    assert result.expired_at == credential.expires_at
    assert ReplayLedger(db_session).history(3) == []


def test_expiry_boundary_is_inclusive(credential_service, verifier, clock) -> None:
    credential = credential_service.issue(42, 7, 3)
    clock.advance(timedelta(hours=24))

    assert isinstance(verifier.scan(credential.token, "gate-a"), Accepted)


def test_flipped_payload_bit_is_forged(credential_service, verifier) -> None:
    credential = credential_service.issue(42, 7, 3)

    result = verifier.scan(_flip_payload_bit(credential.token), "gate-a")

    assert isinstance(result, Forged)
    # The genuine token is still unused.
    assert isinstance(verifier.scan(credential.token, "gate-a"), Accepted)


@pytest.mark.parametrize("index", [0, 1, 5, 20, -1])
def test_any_payload_mutation_is_forged(credential_service, verifier, index) -> None:
    credential = credential_service.issue(42, 7, 3)
    payload, _ = CredentialCodec.unpack_token(credential.token)
    position = index % len(payload)

    assert isinstance(verifier.scan(_flip_payload_bit(credential.token, position), "g"), Forged)


def test_expired_and_forged_reports_forged(credential_service, verifier, clock) -> None:
    credential = credential_service.issue(42, 7, 3)
    clock.advance(timedelta(days=2))

    assert isinstance(verifier.scan(_flip_payload_bit(credential.token), "gate-a"), Forged)


def test_signature_from_other_key_is_forged(verifier, clock) -> None:
    from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

    from passa_gate.services.codec import CredentialFields

    issued = int(clock.now.timestamp())
    payload = CredentialCodec.encode(
        CredentialFields(
            ticket_id=42,
            owner_id=7,
            event_id=3,
            issued_at=issued,
            expires_at=issued + 3600,
            nonce=b"\x01" * 16,
        )
    )
    token = CredentialCodec.pack_token(payload, Ed25519PrivateKey.generate().sign(payload))

    assert isinstance(verifier.scan(token, "gate-a"), Forged)


@pytest.mark.parametrize("token", ["", "not a token", "abc.def.ghi", "@@@@.@@@@"])
def test_undecodable_token_is_invalid(verifier, token) -> None:
    assert isinstance(verifier.scan(token, "gate-a"), Invalid)


def test_signed_unsupported_version_is_invalid(verifier, key_ring, clock) -> None:
    issued = int(clock.now.timestamp())
    payload = f"v2|42|7|3|{issued}|{issued + 3600}|{'ab' * 16}".encode()
    token = CredentialCodec.pack_token(payload, key_ring.sign(payload))

    result = verifier.scan(token, "gate-a")

    assert isinstance(result, Invalid)
    assert "v2" in result.reason


def test_signed_garbage_payload_is_invalid(verifier, key_ring) -> None:
    payload = b"v1|hello"
    token = CredentialCodec.pack_token(payload, key_ring.sign(payload))

    assert isinstance(verifier.scan(token, "gate-a"), Invalid)


def test_padded_token_is_still_accepted(credential_service, verifier) -> None:
    credential = credential_service.issue(42, 7, 3)
    payload, signature = CredentialCodec.unpack_token(credential.token)
    padded = ".".join(
        base64.urlsafe_b64encode(part).decode() for part in (payload, signature)
    )

    assert isinstance(verifier.scan(padded, "gate-a"), Accepted)


def test_scanned_by_is_required(credential_service, verifier) -> None:
    credential = credential_service.issue(42, 7, 3)
    with pytest.raises(ValueError):
        verifier.scan(credential.token, "  ")


def test_signed_id_beyond_ledger_range_is_invalid(verifier, key_ring, clock, db_session) -> None:
    issued = int(clock.now.timestamp())
    payload = f"v1|{2**63}|7|3|{issued}|{issued + 3600}|{'ab' * 16}".encode()
    token = CredentialCodec.pack_token(payload, key_ring.sign(payload))

    assert isinstance(verifier.scan(token, "gate-a"), Invalid)
    assert ReplayLedger(db_session).history(3) == []
