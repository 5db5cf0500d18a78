"""Agent registration, key rotation and directory endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Query, Request, status
from sqlalchemy import desc

from openclaw_recipes.api.v1.dependencies import (
    ClientIpDep,
    SecurityDep,
    SessionDep,
    get_agent_by_public_key,
    raise_for_check,
)
from openclaw_recipes.core.clock import utcnow
from openclaw_recipes.models import Agent, Message, Project, ProjectParticipant
from openclaw_recipes.schemas.agent import (
    AgentDetailResponse,
    AgentListResponse,
    AgentMessageEntry,
    AgentProjectEntry,
    AgentRegisterRequest,
    AgentRegisterResponse,
    AgentSummary,
    RotateKeyRequest,
    RotateKeyResponse,
)
from openclaw_recipes.services.audit import AuditEventType
from openclaw_recipes.services.crypto import CryptoService
from openclaw_recipes.services.message_security import RiskLevel
from openclaw_recipes.services.rate_limit import ROTATE_KEY
from openclaw_recipes.services.sanitize import (
    AGENT_BIO_MAX,
    sanitize_agent_name,
    sanitize_capabilities,
    sanitize_text,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/agents", tags=["agents"])
crypto_service = CryptoService()


@router.post("/register", response_model=AgentRegisterResponse, status_code=status.HTTP_201_CREATED)
async def register_agent(
    payload: AgentRegisterRequest,
    request: Request,
    security: SecurityDep,
    db: SessionDep,
    ip: ClientIpDep,
) -> AgentRegisterResponse:
    """Register a new agent.

    The caller must present an unused challenge, a proof-of-work solution for
    it and a signature whose message is the challenge itself.
    """
    try:
        name = sanitize_agent_name(payload.name)
    except ValueError as err:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(err)) from err

    envelope = payload.signature.to_envelope()
    raise_for_check(
        security.auth.verify_registration(
            payload.challenge,
            envelope,
            payload.pow.to_solution(),
            ip=ip,
        )
    )

    agent_id = crypto_service.derive_agent_id(envelope.public_key)
    existing = (
        db.query(Agent)
        .filter((Agent.public_key == envelope.public_key) | (Agent.id == agent_id))
        .first()
    )
    if existing is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Agent already registered",
        )

    agent = Agent(
        id=agent_id,
        public_key=envelope.public_key,
        name=name,
        bio=sanitize_text(payload.bio, AGENT_BIO_MAX) if payload.bio else None,
        capabilities=sanitize_capabilities(payload.capabilities),
        reputation_score=0,
    )
    db.add(agent)
    db.commit()
    db.refresh(agent)

    security.auth.record_event(
        AuditEventType.AGENT_REGISTER,
        RiskLevel.LOW,
        agent_id=agent.id,
        agent_public_key=agent.public_key,
        ip=ip,
        user_agent=request.headers.get("user-agent"),
        details={"name": agent.name},
    )
    logger.info("Registered agent %s (%s)", agent.name, agent.id[:12])
    return AgentRegisterResponse(agent=AgentSummary.model_validate(agent))


@router.post("/rotate-key", response_model=RotateKeyResponse)
async def rotate_key(
    payload: RotateKeyRequest,
    security: SecurityDep,
    db: SessionDep,
    ip: ClientIpDep,
) -> RotateKeyResponse:
    """Move an agent to a new public key.

    The request is signed with the current key over
    ``rotate_key:{new_public_key}:{challenge}``. The agent id and reputation
    are unchanged.
    """
    raise_for_check(security.auth.enforce_rate_limit(ROTATE_KEY, ip, ip=ip))

    envelope = payload.signature.to_envelope()
    expected = f"rotate_key:{payload.new_public_key}:{payload.challenge}"
    raise_for_check(
        security.auth.authenticate(payload.challenge, envelope, expected, ip=ip, action="rotate-key")
    )

    try:
        crypto_service.validate_and_decode_pubkey(payload.new_public_key)
    except ValueError as err:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(err)) from err

    agent = get_agent_by_public_key(db, envelope.public_key)
    if db.query(Agent).filter(Agent.public_key == payload.new_public_key).first() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="New public key already in use",
        )

    agent.public_key = payload.new_public_key
    agent.key_rotated_at = utcnow()
    db.commit()

    security.auth.record_event(
        AuditEventType.AUTH_VERIFY,
        RiskLevel.MEDIUM,
        agent_id=agent.id,
        ip=ip,
        details={
            "action": "key_rotation",
            "old_key_prefix": crypto_service.key_fingerprint(envelope.public_key),
            "new_key_prefix": crypto_service.key_fingerprint(payload.new_public_key),
        },
    )
    return RotateKeyResponse(agent_id=agent.id)


@router.get("", response_model=AgentListResponse)
async def list_agents(
    db: SessionDep,
    limit: int = Query(100, ge=1, le=500),
) -> AgentListResponse:
    """List registered agents, newest first."""
    agents = db.query(Agent).order_by(desc(Agent.created_at)).limit(limit).all()
    summaries = [AgentSummary.model_validate(agent) for agent in agents]
    return AgentListResponse(agents=summaries, count=len(summaries))


@router.get("/{agent_id}", response_model=AgentDetailResponse)
async def get_agent(agent_id: str, db: SessionDep) -> AgentDetailResponse:
    """Return an agent profile with its projects and recent messages."""
    agent = db.get(Agent, agent_id)
    if agent is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Agent not found")

    memberships = (
        db.query(ProjectParticipant, Project)
        .join(Project, Project.id == ProjectParticipant.project_id)
        .filter(ProjectParticipant.agent_id == agent_id)
        .all()
    )
    projects = [
        AgentProjectEntry(id=project.id, title=project.title, status=project.status, role=member.role)
        for member, project in memberships
    ]

    recent = (
        db.query(Message, Project.title)
        .join(Project, Project.id == Message.project_id)
        .filter(Message.agent_id == agent_id)
        .order_by(desc(Message.created_at))
        .limit(20)
        .all()
    )
    messages = [
        AgentMessageEntry(
            id=message.id,
            project_id=message.project_id,
            project_title=title,
            message_type=message.message_type,
            content=message.content,
            created_at=message.created_at,
        )
        for message, title in recent
    ]
    return AgentDetailResponse(
        agent=AgentSummary.model_validate(agent),
        projects=projects,
        messages=messages,
    )
