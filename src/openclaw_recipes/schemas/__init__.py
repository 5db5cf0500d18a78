"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .agent import AgentRegisterRequest, AgentSummary, RotateKeyRequest
from .auth import ChallengeResponse, ProofOfWorkPayload, SignaturePayload
from .message import MessageCreate, MessageResponse
from .project import ProjectCreate, ProjectJoin, ProjectResponse

__all__ = [
    "AgentRegisterRequest", "AgentSummary", "RotateKeyRequest",
    "ChallengeResponse", "ProofOfWorkPayload", "SignaturePayload",
    "MessageCreate", "MessageResponse",
    "ProjectCreate", "ProjectJoin", "ProjectResponse",
]
