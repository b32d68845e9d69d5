# src/passa_gate/services/keys.py
"""Credential key material loaded from the deployment environment."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from passa_gate.core.security import decode_key_bytes
from passa_gate.core.settings import Settings, settings
from passa_gate.services.crypto import (
    HmacSha256SignatureEngine,
    SignatureEngine,
    get_signature_engine,
)

MIN_HMAC_SECRET_BYTES = 32


class KeyUnavailable(RuntimeError):
    """Required signing or verification key material is not configured."""


@dataclass(frozen=True)
class CredentialKeyRing:
    """Signature engine bound to the configured key material.

    `signing_key` is None on verify-only deployments such as gate devices.
    """

    engine: SignatureEngine
    signing_key: Any | None
    verify_key: Any

    @property
    def can_sign(self) -> bool:
        return self.signing_key is not None

    def sign(self, payload: bytes) -> bytes:
        if self.signing_key is None:
            raise KeyUnavailable("Credential signing key is not configured")
        return self.engine.sign(payload, self.signing_key)

    def verify(self, payload: bytes, signature: bytes) -> bool:
        return self.engine.verify(payload, signature, self.verify_key)


def _load_ed25519(config: Settings) -> tuple[Ed25519PrivateKey | None, Ed25519PublicKey]:
    private_key: Ed25519PrivateKey | None = None
    if config.ticket_signing_private_key:
        try:
            private_key = Ed25519PrivateKey.from_private_bytes(
                decode_key_bytes(config.ticket_signing_private_key)
            )
        except ValueError as err:
            raise KeyUnavailable(f"TICKET_SIGNING_PRIVATE_KEY is invalid: {err}") from err

    if config.ticket_verify_public_key:
        try:
            public_key = Ed25519PublicKey.from_public_bytes(
                decode_key_bytes(config.ticket_verify_public_key)
            )
        except ValueError as err:
            raise KeyUnavailable(f"TICKET_VERIFY_PUBLIC_KEY is invalid: {err}") from err
        if private_key is not None and (
            private_key.public_key().public_bytes_raw() != public_key.public_bytes_raw()
        ):
            raise KeyUnavailable("Configured public key does not match the signing key")
        return private_key, public_key

    if private_key is None:
        raise KeyUnavailable(
            "Neither TICKET_SIGNING_PRIVATE_KEY nor TICKET_VERIFY_PUBLIC_KEY is configured"
        )
    return private_key, private_key.public_key()


def _load_hmac(config: Settings) -> bytes:
    if not config.ticket_hmac_secret:
        raise KeyUnavailable("TICKET_HMAC_SECRET is not configured")
    secret = config.ticket_hmac_secret.encode("utf-8")
    if len(secret) < MIN_HMAC_SECRET_BYTES:
        raise KeyUnavailable(
            f"TICKET_HMAC_SECRET must be at least {MIN_HMAC_SECRET_BYTES} bytes"
        )
    return secret


def load_key_ring(config: Settings | None = None, *, require_signing: bool = False) -> CredentialKeyRing:
    """Build the key ring for the configured algorithm.

    Args:
        config: Settings to read; defaults to the process settings.
        require_signing: Fail unless issuance key material is present.

    Raises:
        KeyUnavailable: If required key material is missing or malformed.
    """
    config = config or settings
    engine = get_signature_engine(config.ticket_signing_algorithm)
    if isinstance(engine, HmacSha256SignatureEngine):
        secret = _load_hmac(config)
        return CredentialKeyRing(engine=engine, signing_key=secret, verify_key=secret)

    private_key, public_key = _load_ed25519(config)
    if require_signing and private_key is None:
        raise KeyUnavailable("TICKET_SIGNING_PRIVATE_KEY is not configured")
    return CredentialKeyRing(engine=engine, signing_key=private_key, verify_key=public_key)
