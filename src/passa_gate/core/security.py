"""Key decoding and party identity utilities built on Ed25519 primitives."""
from __future__ import annotations

import base64
import binascii
import secrets

from nacl.exceptions import CryptoError
from nacl.signing import SigningKey

ED25519_KEY_BYTES = 32


def _decode_base64(data: str) -> bytes:
    """Decode a URL-safe base64 string, accepting omitted padding."""
    padding = "=" * (-len(data) % 4)
    try:
        return base64.urlsafe_b64decode(data + padding)
    except (binascii.Error, ValueError) as err:
        raise ValueError(f"Invalid base64 encoding: {err}") from err


def _decode_hex(data: str) -> bytes:
    try:
        return bytes.fromhex(data)
    except ValueError as err:
        raise ValueError(f"Invalid hex encoding: {err}") from err


def decode_key_bytes(encoded: str, length: int = ED25519_KEY_BYTES) -> bytes:
    """Decode key material supplied as base64url or hex.

    Args:
        encoded: Key text from configuration or user input.
        length: Required decoded length in bytes.

    Returns:
        The raw key bytes.

    Raises:
        ValueError: If no supported encoding yields `length` bytes.
    """
    cleaned = encoded.strip()
    errors: list[str] = []
    for decoder in (_decode_base64, _decode_hex):
        try:
            result = decoder(cleaned)
        except ValueError as err:
            errors.append(str(err))
            continue
        if len(result) != length:
            errors.append(f"key material must be {length} bytes")
            continue
        return result
    joined = "; ".join(errors) if errors else "unknown decoding error"
    raise ValueError(f"Invalid key format: {joined}")


def derive_public_identity(secret: str) -> str:
    """Return the hex-encoded Ed25519 verify key for a party secret (seed).

    Raises:
        ValueError: If the secret is not a well-formed 32-byte seed.
    """
    seed = decode_key_bytes(secret)
    try:
        signing_key = SigningKey(seed)
    except (CryptoError, TypeError) as err:
        raise ValueError(f"Invalid secret key: {err}") from err
    return signing_key.verify_key.encode().hex()


def secret_matches_identity(secret: str, expected_identity: str) -> bool:
    """Return True if `secret` derives to `expected_identity`.

    Malformed secrets never match. The final comparison is constant time.
    """
    try:
        derived = derive_public_identity(secret)
    except ValueError:
        return False
    return secrets.compare_digest(derived.encode(), expected_identity.strip().lower().encode())
