# src/passa_gate/services/codec.py
"""Canonical serialization of ticket credential payloads.

A payload is a `|`-joined ASCII record whose first field is a mandatory
version tag::

    v1|<ticket_id>|<owner_id>|<event_id>|<issued_at>|<expires_at>|<nonce_hex>

Integers are unsigned decimal without leading zeros, timestamps are Unix
seconds and the nonce is lowercase hex. Exactly one byte string encodes a
given field set, which is what the signature covers.

The transport token is `base64url(payload) "." base64url(signature)` with
padding stripped, small enough for a QR code at high error correction.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from typing import Final

CURRENT_VERSION: Final[int] = 1
SUPPORTED_VERSIONS: Final[frozenset[int]] = frozenset({CURRENT_VERSION})
MIN_NONCE_BYTES: Final[int] = 16
MAX_NONCE_BYTES: Final[int] = 32
# Largest value the signed BIGINT ledger columns can hold.
MAX_FIELD_VALUE: Final[int] = 2**63 - 1

_SEPARATOR: Final[bytes] = b"|"
_TOKEN_SEPARATOR: Final[str] = "."
_FIELD_COUNT: Final[int] = 7


class CredentialDecodeError(ValueError):
    """Base class for payloads or tokens that cannot be decoded."""


class MalformedPayload(CredentialDecodeError):
    """The payload or token structure cannot be parsed."""


class UnsupportedVersion(CredentialDecodeError):
    """The payload carries a version tag this build does not understand."""

    def __init__(self, version: str) -> None:
        super().__init__(f"Unsupported credential version: {version!r}")
        self.version = version


@dataclass(frozen=True)
class CredentialFields:
    """Signed content of a ticket credential."""

    ticket_id: int
    owner_id: int
    event_id: int
    issued_at: int
    expires_at: int
    nonce: bytes
    version: int = CURRENT_VERSION

    @property
    def nonce_hex(self) -> str:
        return self.nonce.hex()


def _encode_uint(value: int, name: str) -> bytes:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{name} must be a non-negative integer")
    if value > MAX_FIELD_VALUE:
        raise ValueError(f"{name} exceeds {MAX_FIELD_VALUE}")
    return str(value).encode("ascii")


def _decode_uint(raw: bytes, name: str) -> int:
    if not raw or not raw.isdigit() or (len(raw) > 1 and raw.startswith(b"0")):
        raise MalformedPayload(f"{name} is not a canonical unsigned integer")
    value = int(raw)
    if value > MAX_FIELD_VALUE:
        raise MalformedPayload(f"{name} is out of range")
    return value


def _decode_nonce(raw: bytes) -> bytes:
    if raw != raw.lower():
        raise MalformedPayload("nonce must be lowercase hex")
    try:
        nonce = binascii.unhexlify(raw)
    except (binascii.Error, ValueError) as err:
        raise MalformedPayload(f"nonce is not hex: {err}") from err
    if not MIN_NONCE_BYTES <= len(nonce) <= MAX_NONCE_BYTES:
        raise MalformedPayload("nonce has an invalid length")
    return nonce


def _b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _b64decode(data: str) -> bytes:
    if not data:
        raise MalformedPayload("empty token segment")
    padding = "=" * (-len(data) % 4)
    try:
        return base64.b64decode(data + padding, altchars=b"-_", validate=True)
    except (binascii.Error, ValueError) as err:
        raise MalformedPayload(f"Invalid base64 encoding: {err}") from err


class CredentialCodec:
    """Encode and decode credential payloads and transport tokens."""

    @staticmethod
    def encode(fields: CredentialFields) -> bytes:
        """Return the canonical byte serialization of `fields`."""
        if fields.version not in SUPPORTED_VERSIONS:
            raise ValueError(f"Cannot encode unsupported version {fields.version}")
        if fields.expires_at < fields.issued_at:
            raise ValueError("expires_at must not precede issued_at")
        if not MIN_NONCE_BYTES <= len(fields.nonce) <= MAX_NONCE_BYTES:
            raise ValueError("nonce has an invalid length")
        return _SEPARATOR.join(
            (
                f"v{fields.version}".encode("ascii"),
                _encode_uint(fields.ticket_id, "ticket_id"),
                _encode_uint(fields.owner_id, "owner_id"),
                _encode_uint(fields.event_id, "event_id"),
                _encode_uint(fields.issued_at, "issued_at"),
                _encode_uint(fields.expires_at, "expires_at"),
                fields.nonce.hex().encode("ascii"),
            )
        )

    @staticmethod
    def decode(data: bytes) -> CredentialFields:
        """Parse canonical payload bytes.

        Raises:
            UnsupportedVersion: If the version tag is well formed but unknown.
            MalformedPayload: For any other structural problem.
        """
        parts = data.split(_SEPARATOR)
        tag = parts[0]
        if not (tag.startswith(b"v") and tag[1:].isdigit()):
            raise MalformedPayload("missing version tag")
        version_raw = tag[1:]
        if len(version_raw) > 1 and version_raw.startswith(b"0"):
            raise MalformedPayload("version tag is not canonical")
        version = int(version_raw)
        if version not in SUPPORTED_VERSIONS:
            raise UnsupportedVersion(tag.decode("ascii"))
        if len(parts) != _FIELD_COUNT:
            raise MalformedPayload(f"expected {_FIELD_COUNT} fields, found {len(parts)}")

        issued_at = _decode_uint(parts[4], "issued_at")
        expires_at = _decode_uint(parts[5], "expires_at")
        if expires_at < issued_at:
            raise MalformedPayload("expires_at precedes issued_at")
        return CredentialFields(
            ticket_id=_decode_uint(parts[1], "ticket_id"),
            owner_id=_decode_uint(parts[2], "owner_id"),
            event_id=_decode_uint(parts[3], "event_id"),
            issued_at=issued_at,
            expires_at=expires_at,
            nonce=_decode_nonce(parts[6]),
            version=version,
        )

    @staticmethod
    def pack_token(payload: bytes, signature: bytes) -> str:
        """Join payload and signature into the opaque QR token string."""
        return f"{_b64encode(payload)}{_TOKEN_SEPARATOR}{_b64encode(signature)}"

    @staticmethod
    def unpack_token(token: str) -> tuple[bytes, bytes]:
        """Split a scanned token into `(payload, signature)` bytes.

        Raises:
            MalformedPayload: If the token is not two base64url segments.
        """
        cleaned = token.strip()
        try:
            cleaned.encode("ascii")
        except UnicodeEncodeError as err:
            raise MalformedPayload("token must be ASCII") from err
        segments = cleaned.split(_TOKEN_SEPARATOR)
        if len(segments) != 2:
            raise MalformedPayload("token must contain exactly one separator")
        return _b64decode(segments[0]), _b64decode(segments[1])
