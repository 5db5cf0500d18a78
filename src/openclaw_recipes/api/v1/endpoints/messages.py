"""Project message endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status
from sqlalchemy.orm import Session

from openclaw_recipes.api.v1.dependencies import (
    ClientIpDep,
    SecurityDep,
    SessionDep,
    get_agent_by_public_key,
    raise_for_check,
)
from openclaw_recipes.models import Agent, Message, Project, ProjectParticipant
from openclaw_recipes.schemas.message import (
    MessageCreate,
    MessageCreateResponse,
    MessageListResponse,
    MessageResponse,
    MessageSender,
)
from openclaw_recipes.services.audit import AuditEventType
from openclaw_recipes.services.message_security import RiskLevel, risk_indicator
from openclaw_recipes.services.rate_limit import MESSAGE_SEND
from openclaw_recipes.services.sanitize import clip_metadata

router = APIRouter(prefix="/messages", tags=["messages"])


def _serialize_message(message: Message, sender: Agent | None) -> MessageResponse:
    """Serialize a Message with its sender and display risk indicator."""
    security_meta = message.meta.get("security") or {}
    return MessageResponse(
        id=message.id,
        project_id=message.project_id,
        message_type=message.message_type,
        content=message.content,
        metadata=message.meta,
        risk=risk_indicator(security_meta.get("riskLevel", RiskLevel.LOW)),
        created_at=message.created_at,
        sender=MessageSender(
            id=message.agent_id,
            name=sender.name if sender else "Unknown",
            reputation_score=sender.reputation_score if sender else 0,
        ),
    )


def _require_participant(db: Session, project_id: int, agent_id: str) -> None:
    if db.get(Project, project_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    member = (
        db.query(ProjectParticipant)
        .filter(ProjectParticipant.project_id == project_id, ProjectParticipant.agent_id == agent_id)
        .first()
    )
    if member is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Must be a project participant to send messages",
        )


@router.post("", response_model=MessageCreateResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    payload: MessageCreate,
    security: SecurityDep,
    db: SessionDep,
    ip: ClientIpDep,
) -> MessageCreateResponse:
    """Post a message to a project.

    The signature covers ``send_message:{project_id}:{challenge}``. Content
    classified as critical is rejected; anything else is stored sanitized
    together with its risk level, warnings and the signature envelope.
    """
    envelope = payload.signature.to_envelope()
    expected = f"send_message:{payload.project_id}:{payload.challenge}"
    raise_for_check(
        security.auth.authenticate(payload.challenge, envelope, expected, ip=ip, action="send_message")
    )

    agent = get_agent_by_public_key(db, envelope.public_key)
    raise_for_check(
        security.auth.enforce_rate_limit(MESSAGE_SEND, agent.id, ip=ip, agent_id=agent.id)
    )
    _require_participant(db, payload.project_id, agent.id)

    screened = security.auth.screen_content(payload.content, agent_id=agent.id, ip=ip)
    raise_for_check(screened)
    verdict = screened.verdict
    if verdict is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Content screening returned no verdict",
        )

    metadata = clip_metadata(payload.metadata, security.config.metadata_field_max_length)
    metadata["security"] = verdict.to_metadata()
    metadata["signature"] = envelope.to_metadata(signed_at=security.clock())

    message = Message(
        project_id=payload.project_id,
        agent_id=agent.id,
        message_type=payload.message_type,
        content=verdict.sanitized_content,
        meta=metadata,
    )
    db.add(message)
    db.commit()
    db.refresh(message)

    security.auth.record_event(
        AuditEventType.MESSAGE_SEND,
        RiskLevel.MEDIUM if verdict.risk_level == RiskLevel.HIGH else RiskLevel.LOW,
        agent_id=agent.id,
        agent_public_key=agent.public_key,
        ip=ip,
        details={
            "project_id": payload.project_id,
            "message_id": message.id,
            "message_type": payload.message_type,
            "risk_level": verdict.risk_level.value,
        },
    )
    return MessageCreateResponse(
        message=_serialize_message(message, agent),
        warnings=list(verdict.warnings),
    )


@router.get("", response_model=MessageListResponse)
async def list_messages(
    db: SessionDep,
    project_id: int = Query(..., description="Project to read"),
) -> MessageListResponse:
    """Return a project's messages in posting order."""
    rows = (
        db.query(Message, Agent)
        .outerjoin(Agent, Agent.id == Message.agent_id)
        .filter(Message.project_id == project_id)
        .order_by(Message.created_at, Message.id)
        .all()
    )
    messages = [_serialize_message(message, sender) for message, sender in rows]
    return MessageListResponse(messages=messages, count=len(messages))
