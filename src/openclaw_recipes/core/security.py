"""Signature utilities built on Ed25519 primitives.

Agents prove possession of a private key by signing either a server-issued
challenge or a canonical encoding of one HTTP request. Verification never
raises: malformed input is reported as an invalid signature.
"""
from __future__ import annotations

import base64
import binascii
import hashlib
from dataclasses import dataclass
from typing import Any

from nacl.exceptions import CryptoError
from nacl.signing import VerifyKey

from openclaw_recipes.core.clock import now_ms

PUBLIC_KEY_BYTES = 32
SIGNATURE_BYTES = 64
CANONICAL_DELIMITER = "\n"
DEFAULT_REQUEST_MAX_AGE_MS = 5 * 60 * 1000


@dataclass(frozen=True)
class SignatureEnvelope:
    """Detached signature presented by an agent."""

    public_key: str  # base64 Ed25519 public key
    signature: str  # base64 detached signature
    message: str  # the exact text that was signed

    def to_metadata(self, signed_at: int) -> dict[str, Any]:
        """Return the envelope in the form stored for non-repudiation."""
        return {
            "publicKey": self.public_key,
            "signature": self.signature,
            "message": self.message,
            "signedAt": signed_at,
        }


@dataclass(frozen=True)
class CanonicalRequest:
    """The parts of an HTTP request covered by a request-bound signature."""

    method: str
    path: str
    body: bytes
    timestamp: int
    nonce: str

    def canonical(self) -> str:
        """Return the string an agent signs to authorize this exact request."""
        return canonical_request(self.method, self.path, self.body, self.timestamp, self.nonce)


def canonical_request(method: str, path: str, body: bytes, timestamp: int, nonce: str) -> str:
    """Join the request fields into the canonical signing string.

    Args:
        method: HTTP method, case-insensitive.
        path: Request path without scheme, host or query string.
        body: Raw request body bytes.
        timestamp: Client timestamp in milliseconds.
        nonce: Single-use value chosen by the client.

    Returns:
        ``METHOD\\npath\\nsha256(body)\\ntimestamp\\nnonce``
    """
    return CANONICAL_DELIMITER.join(
        (
            method.upper(),
            path,
            hashlib.sha256(body).hexdigest(),
            str(int(timestamp)),
            nonce,
        )
    )


def decode_base64(data: str) -> bytes:
    """Decode standard or URL-safe base64, accepting omitted padding.

    Raises:
        ValueError: If the input is not valid base64.
    """
    cleaned = data.strip()
    padded = cleaned + "=" * (-len(cleaned) % 4)
    altchars = b"-_" if ("-" in cleaned or "_" in cleaned) else None
    try:
        return base64.b64decode(padded, altchars=altchars, validate=True)
    except (binascii.Error, ValueError) as err:
        raise ValueError(f"Invalid base64 encoding: {err}") from err


def encode_base64(data: bytes) -> str:
    """Return standard base64 text for raw bytes."""
    return base64.b64encode(data).decode("ascii")


def decode_public_key(public_key: str) -> bytes:
    """Decode and length-check a base64 Ed25519 public key.

    Raises:
        ValueError: If the key is not 32 bytes of valid base64.
    """
    key_bytes = decode_base64(public_key)
    if len(key_bytes) != PUBLIC_KEY_BYTES:
        raise ValueError("Ed25519 public keys must be 32 bytes")
    return key_bytes


def verify_signature(public_key: str, message: bytes, signature: str) -> bool:
    """Verify an Ed25519 signature.

    Args:
        public_key: Base64-encoded 32-byte public key.
        message: Exact bytes that were signed on the client.
        signature: Base64-encoded 64-byte detached signature.

    Returns:
        True if the signature is valid for `message` under `public_key`; False otherwise.
    """
    try:
        verify_key = VerifyKey(decode_public_key(public_key))
        signature_bytes = decode_base64(signature)
        if len(signature_bytes) != SIGNATURE_BYTES:
            return False
        verify_key.verify(message, signature_bytes)
        return True
    except (CryptoError, ValueError, TypeError):
        return False


def verify_agent_signature(envelope: SignatureEnvelope, expected_message: str) -> bool:
    """Return True if the envelope signs exactly `expected_message`."""
    if envelope.message != expected_message:
        return False
    try:
        message_bytes = envelope.message.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return verify_signature(envelope.public_key, message_bytes, envelope.signature)


def verify_request_signature(
    envelope: SignatureEnvelope,
    request: CanonicalRequest,
    max_age_ms: int = DEFAULT_REQUEST_MAX_AGE_MS,
    now: int | None = None,
) -> bool:
    """Verify a signature bound to one specific HTTP request.

    The signature must cover the canonical request string and the request
    timestamp must lie within `max_age_ms` of `now` in either direction.
    Nonce single-use is enforced separately by the challenge store.
    """
    current = now_ms() if now is None else now
    if abs(current - int(request.timestamp)) > max_age_ms:
        return False
    return verify_agent_signature(envelope, request.canonical())
