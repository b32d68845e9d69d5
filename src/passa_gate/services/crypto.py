# src/passa_gate/services/crypto.py
"""Signature engines for credential payloads.

Engines are independent of payload semantics: they sign and verify opaque
bytes with key material handed to them. They never generate or store keys.
"""

from __future__ import annotations

import hashlib
import hmac
from abc import ABC, abstractmethod
from typing import Any, Final

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

ED25519_SIGNATURE_BYTES: Final[int] = 64
HMAC_SHA256_BYTES: Final[int] = 32


class SignatureEngine(ABC):
    """Sign and verify payload bytes under caller-supplied key material."""

    algorithm: str

    @abstractmethod
    def sign(self, payload: bytes, key: Any) -> bytes:
        """Return the signature of `payload` under `key`."""

    @abstractmethod
    def verify(self, payload: bytes, signature: bytes, key: Any) -> bool:
        """Return True if `signature` is valid for `payload` under `key`."""


class Ed25519SignatureEngine(SignatureEngine):
    """Asymmetric engine: issuers hold the private key, gates the public key."""

    algorithm = "ed25519"

    def sign(self, payload: bytes, key: Ed25519PrivateKey) -> bytes:
        return key.sign(payload)

    def verify(self, payload: bytes, signature: bytes, key: Ed25519PublicKey) -> bool:
        if len(signature) != ED25519_SIGNATURE_BYTES:
            return False
        try:
            key.verify(signature, payload)
            return True
        except (InvalidSignature, ValueError):
            return False


class HmacSha256SignatureEngine(SignatureEngine):
    """Symmetric engine for deployments where every gate shares the secret."""

    algorithm = "hmac-sha256"

    def sign(self, payload: bytes, key: bytes) -> bytes:
        return hmac.new(key, payload, hashlib.sha256).digest()

    def verify(self, payload: bytes, signature: bytes, key: bytes) -> bool:
        expected = self.sign(payload, key)
        return hmac.compare_digest(expected, signature)


def get_signature_engine(algorithm: str) -> SignatureEngine:
    """Return the engine registered under `algorithm`."""
    if algorithm == Ed25519SignatureEngine.algorithm:
        return Ed25519SignatureEngine()
    if algorithm == HmacSha256SignatureEngine.algorithm:
        return HmacSha256SignatureEngine()
    raise ValueError(f"Unknown signing algorithm: {algorithm!r}")
