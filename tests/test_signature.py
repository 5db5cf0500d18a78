"""Tests for Ed25519 signature verification helpers."""

import base64
import hashlib

import pytest
from nacl.signing import SigningKey

from openclaw_recipes.core.security import (
    CanonicalRequest,
    SignatureEnvelope,
    canonical_request,
    decode_base64,
    decode_public_key,
    encode_base64,
    verify_agent_signature,
    verify_request_signature,
    verify_signature,
)

NOW = 1_700_000_000_000


def _envelope(key: SigningKey, message: str) -> SignatureEnvelope:
    signature = key.sign(message.encode()).signature
    return SignatureEnvelope(
        public_key=encode_base64(bytes(key.verify_key)),
        signature=encode_base64(signature),
        message=message,
    )


def test_verify_signature_rejects_bad_inputs() -> None:
    """verify_signature returns False for undecodable or wrongly sized inputs."""
    assert verify_signature("zz", b"msg", "aa") is False
    assert verify_signature(encode_base64(b"\x00" * 31), b"msg", encode_base64(b"\x00" * 64)) is False
    key = SigningKey.generate()
    public_key = encode_base64(bytes(key.verify_key))
    assert verify_signature(public_key, b"msg", encode_base64(b"\x00" * 63)) is False
    assert verify_signature(public_key, b"msg", "not base64!") is False


def test_valid_signature_verifies() -> None:
    key = SigningKey.generate()
    envelope = _envelope(key, "hello")
    assert verify_agent_signature(envelope, "hello") is True


def test_url_safe_base64_is_accepted() -> None:
    key = SigningKey.generate()
    signature = key.sign(b"hello").signature
    envelope = SignatureEnvelope(
        public_key=base64.urlsafe_b64encode(bytes(key.verify_key)).decode().rstrip("="),
        signature=base64.urlsafe_b64encode(signature).decode().rstrip("="),
        message="hello",
    )
    assert verify_agent_signature(envelope, "hello") is True


def test_message_mismatch_fails_even_with_valid_signature() -> None:
    key = SigningKey.generate()
    envelope = _envelope(key, "hello")
    assert verify_agent_signature(envelope, "hello!") is False


def test_signature_from_other_key_fails() -> None:
    signer, other = SigningKey.generate(), SigningKey.generate()
    envelope = _envelope(signer, "hello")
    forged = SignatureEnvelope(
        public_key=encode_base64(bytes(other.verify_key)),
        signature=envelope.signature,
        message=envelope.message,
    )
    assert verify_agent_signature(forged, "hello") is False


@pytest.mark.parametrize("index", [0, 31, 63])
def test_single_bit_flip_in_signature_fails(index: int) -> None:
    key = SigningKey.generate()
    envelope = _envelope(key, "challenge-token")
    raw = bytearray(decode_base64(envelope.signature))
    raw[index] ^= 0x01
    tampered = SignatureEnvelope(envelope.public_key, encode_base64(bytes(raw)), envelope.message)
    assert verify_agent_signature(tampered, "challenge-token") is False


@pytest.mark.parametrize("index", [0, 15, 31])
def test_single_bit_flip_in_public_key_fails(index: int) -> None:
    key = SigningKey.generate()
    envelope = _envelope(key, "challenge-token")
    raw = bytearray(decode_base64(envelope.public_key))
    raw[index] ^= 0x01
    tampered = SignatureEnvelope(encode_base64(bytes(raw)), envelope.signature, envelope.message)
    assert verify_agent_signature(tampered, "challenge-token") is False


def test_signature_over_other_bytes_fails_for_matching_message() -> None:
    key = SigningKey.generate()
    signed_elsewhere = key.sign(b"challenge-tokeo").signature
    envelope = SignatureEnvelope(
        public_key=encode_base64(bytes(key.verify_key)),
        signature=encode_base64(signed_elsewhere),
        message="challenge-token",
    )
    assert envelope.message == "challenge-token"
    assert verify_agent_signature(envelope, "challenge-token") is False


def test_decode_public_key_checks_length() -> None:
    with pytest.raises(ValueError):
        decode_public_key(encode_base64(b"\x01" * 16))
    assert decode_public_key(encode_base64(b"\x01" * 32)) == b"\x01" * 32


def test_canonical_request_layout() -> None:
    body = b'{"a":1}'
    canonical = canonical_request("post", "/api/v1/projects", body, NOW, "abc123")
    assert canonical.split("\n") == [
        "POST",
        "/api/v1/projects",
        hashlib.sha256(body).hexdigest(),
        str(NOW),
        "abc123",
    ]


def _signed_request(key: SigningKey, request: CanonicalRequest) -> SignatureEnvelope:
    return _envelope(key, request.canonical())


def test_request_signature_round_trip() -> None:
    key = SigningKey.generate()
    request = CanonicalRequest("POST", "/api/v1/projects", b"{}", NOW, "nonce-1")
    envelope = _signed_request(key, request)
    assert verify_request_signature(envelope, request, now=NOW + 1000) is True


def test_request_signature_bound_to_body_and_path() -> None:
    key = SigningKey.generate()
    request = CanonicalRequest("POST", "/api/v1/projects", b"{}", NOW, "nonce-1")
    envelope = _signed_request(key, request)

    other_body = CanonicalRequest("POST", "/api/v1/projects", b'{"x":1}', NOW, "nonce-1")
    other_path = CanonicalRequest("POST", "/api/v1/projects/1/join", b"{}", NOW, "nonce-1")
    assert verify_request_signature(envelope, other_body, now=NOW) is False
    assert verify_request_signature(envelope, other_path, now=NOW) is False


def test_request_signature_rejects_stale_and_future_timestamps() -> None:
    key = SigningKey.generate()
    request = CanonicalRequest("POST", "/p", b"", NOW, "nonce-1")
    envelope = _signed_request(key, request)
    max_age = 5 * 60 * 1000
    assert verify_request_signature(envelope, request, max_age_ms=max_age, now=NOW + max_age) is True
    assert verify_request_signature(envelope, request, max_age_ms=max_age, now=NOW + max_age + 1) is False
    assert verify_request_signature(envelope, request, max_age_ms=max_age, now=NOW - max_age - 1) is False


def test_envelope_metadata_shape() -> None:
    envelope = SignatureEnvelope("pk", "sig", "msg")
    assert envelope.to_metadata(NOW) == {
        "publicKey": "pk",
        "signature": "sig",
        "message": "msg",
        "signedAt": NOW,
    }
