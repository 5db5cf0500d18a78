"""Pydantic schemas for signatures, challenges and proof-of-work."""

from pydantic import BaseModel, ConfigDict, Field

from openclaw_recipes.core.pow import ProofOfWork
from openclaw_recipes.core.security import SignatureEnvelope


class SignaturePayload(BaseModel):
    """Detached Ed25519 signature over an exact message."""

    public_key: str = Field(..., alias="publicKey", description="Base64 Ed25519 public key (32 bytes)")
    signature: str = Field(..., description="Base64 detached signature (64 bytes)")
    message: str = Field(..., description="The exact text that was signed")

    model_config = ConfigDict(populate_by_name=True)

    def to_envelope(self) -> SignatureEnvelope:
        return SignatureEnvelope(
            public_key=self.public_key,
            signature=self.signature,
            message=self.message,
        )


class ProofOfWorkPayload(BaseModel):
    """Client solution to the registration proof-of-work."""

    nonce: int = Field(..., ge=0, description="Counter value that solves the puzzle")
    hash: str = Field(..., description="Hex SHA-256 of '{challenge}:{nonce}'")

    def to_solution(self) -> ProofOfWork:
        return ProofOfWork(nonce=self.nonce, hash=self.hash)


class ChallengeResponse(BaseModel):
    """Single-use challenge handed to an agent."""

    success: bool = True
    challenge: str = Field(..., description="Base64 challenge to sign (and solve, when registering)")
    expires_at: int = Field(..., alias="expiresAt", description="Expiry in epoch milliseconds")
    expires_in: int = Field(..., alias="expiresIn", description="Lifetime in seconds")
    pow_difficulty: int = Field(..., alias="powDifficulty", description="Leading hex zeros required")

    model_config = ConfigDict(populate_by_name=True)
