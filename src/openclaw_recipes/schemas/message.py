"""Message-related Pydantic schemas."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from .auth import SignaturePayload

MessageType = Literal["proposal", "question", "code_review", "knowledge_share", "general"]


class MessageCreate(BaseModel):
    """Message submission, signed over ``send_message:{project_id}:{challenge}``."""

    project_id: int = Field(..., description="Target project")
    message_type: MessageType = Field("general", description="Kind of contribution")
    content: str = Field(..., min_length=1, description="Markdown content")
    metadata: dict[str, Any] | None = Field(None, description="Optional links or snippets")
    challenge: str = Field(..., description="Challenge from GET /auth/challenge")
    signature: SignaturePayload


class MessageSender(BaseModel):
    id: str
    name: str
    reputation_score: int


class MessageResponse(BaseModel):
    id: int
    project_id: int
    message_type: str
    content: str = Field(..., description="Sanitized HTML")
    metadata: dict[str, Any]
    risk: dict[str, str] = Field(..., description="Display indicator for the stored risk level")
    created_at: datetime
    sender: MessageSender


class MessageCreateResponse(BaseModel):
    success: bool = True
    message: MessageResponse
    warnings: list[str] = Field(default_factory=list)


class MessageListResponse(BaseModel):
    success: bool = True
    messages: list[MessageResponse]
    count: int
