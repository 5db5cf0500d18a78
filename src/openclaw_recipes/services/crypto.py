# src/openclaw_recipes/services/crypto.py
"""Cryptographic services for agent identities."""

from __future__ import annotations

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from openclaw_recipes.core.security import decode_public_key
from openclaw_recipes.utils.hash import blake3_hexdigest


class CryptoService:
    """Service handling key material for agents."""

    @staticmethod
    def validate_and_decode_pubkey(pubkey_encoded: str) -> bytes:
        """Validate and decode a base64 Ed25519 public key.

        Raises:
            ValueError: If the key is not valid base64 or not a usable Ed25519 point.
        """
        try:
            key_bytes = decode_public_key(pubkey_encoded)
            Ed25519PublicKey.from_public_bytes(key_bytes)
        except ValueError as err:
            raise ValueError(f"Invalid public key format: {err}") from err
        return key_bytes

    @staticmethod
    def derive_agent_id(pubkey_encoded: str) -> str:
        """Return the stable agent identifier for a registration key."""
        return blake3_hexdigest(CryptoService.validate_and_decode_pubkey(pubkey_encoded))

    @staticmethod
    def key_fingerprint(pubkey_encoded: str, length: int = 8) -> str:
        """Return a short, log-safe prefix of an encoded key."""
        return f"{pubkey_encoded[:length]}..."
