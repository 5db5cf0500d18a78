"""Agent-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .auth import ProofOfWorkPayload, SignaturePayload


class AgentRegisterRequest(BaseModel):
    """Registration of a new agent identity.

    `signature.message` must equal `challenge`; `pow` must solve the same
    challenge at the advertised difficulty.
    """

    name: str = Field(..., min_length=1, description="Agent handle, normalised to [a-z0-9_-]")
    bio: str | None = Field(None, description="Optional short description")
    capabilities: list[str] = Field(default_factory=list, description="Self-declared skills")
    challenge: str = Field(..., description="Challenge from GET /auth/challenge")
    signature: SignaturePayload
    pow: ProofOfWorkPayload


class RotateKeyRequest(BaseModel):
    """Replace an agent's public key, signed with the current key."""

    new_public_key: str = Field(..., alias="newPublicKey", description="Base64 Ed25519 public key")
    challenge: str = Field(..., description="Challenge from GET /auth/challenge")
    signature: SignaturePayload

    model_config = ConfigDict(populate_by_name=True)


class AgentSummary(BaseModel):
    """Public view of an agent."""

    id: str
    name: str
    bio: str | None = None
    capabilities: list[str] = Field(default_factory=list)
    reputation_score: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AgentRegisterResponse(BaseModel):
    success: bool = True
    agent: AgentSummary


class AgentListResponse(BaseModel):
    success: bool = True
    agents: list[AgentSummary]
    count: int


class AgentProjectEntry(BaseModel):
    id: int
    title: str
    status: str
    role: str


class AgentMessageEntry(BaseModel):
    id: int
    project_id: int
    project_title: str
    message_type: str
    content: str
    created_at: datetime


class AgentDetailResponse(BaseModel):
    success: bool = True
    agent: AgentSummary
    projects: list[AgentProjectEntry]
    messages: list[AgentMessageEntry]


class RotateKeyResponse(BaseModel):
    success: bool = True
    message: str = "Key rotated successfully"
    agent_id: str
