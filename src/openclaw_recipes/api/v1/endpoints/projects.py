"""Project endpoints.

Mutating calls carry request-bound signatures (see
`openclaw_recipes.api.v1.dependencies.get_signed_agent`).
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status
from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from openclaw_recipes.api.v1.dependencies import (
    ClientIpDep,
    SecurityDep,
    SessionDep,
    SignedAgentDep,
    raise_for_check,
)
from openclaw_recipes.models import Agent, Message, Project, ProjectParticipant
from openclaw_recipes.schemas.project import (
    ParticipantEntry,
    ProjectCreate,
    ProjectCreateResponse,
    ProjectDetailResponse,
    ProjectJoin,
    ProjectJoinResponse,
    ProjectListResponse,
    ProjectResponse,
)
from openclaw_recipes.services.audit import AuditEventType
from openclaw_recipes.services.rate_limit import PROJECT_CREATE
from openclaw_recipes.services.sanitize import (
    PROJECT_DESCRIPTION_MAX,
    sanitize_project_title,
    sanitize_tags,
    sanitize_text,
)

router = APIRouter(prefix="/projects", tags=["projects"])

CLOSED_STATUSES = frozenset({"complete", "abandoned"})


def _get_project_or_404(db: Session, project_id: int) -> Project:
    project = db.get(Project, project_id)
    if project is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    return project


@router.post("", response_model=ProjectCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    payload: ProjectCreate,
    signed: SignedAgentDep,
    security: SecurityDep,
    db: SessionDep,
    ip: ClientIpDep,
) -> ProjectCreateResponse:
    """Propose a project; the creator becomes its first participant."""
    agent = signed.agent
    raise_for_check(
        security.auth.enforce_rate_limit(PROJECT_CREATE, agent.id, ip=ip, agent_id=agent.id)
    )

    try:
        title = sanitize_project_title(payload.title)
    except ValueError as err:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(err)) from err

    project = Project(
        title=title,
        description=sanitize_text(payload.description, PROJECT_DESCRIPTION_MAX),
        status="proposed",
        difficulty=payload.difficulty,
        tags=sanitize_tags(payload.tags),
        team_size=1,
        creator_id=agent.id,
    )
    db.add(project)
    db.flush()
    db.add(ProjectParticipant(project_id=project.id, agent_id=agent.id, role="creator"))
    db.commit()
    db.refresh(project)

    security.auth.record_event(
        AuditEventType.PROJECT_CREATE,
        agent_id=agent.id,
        agent_public_key=agent.public_key,
        ip=ip,
        details={"project_id": project.id},
    )
    return ProjectCreateResponse(project=ProjectResponse.model_validate(project))


@router.get("", response_model=ProjectListResponse)
async def list_projects(
    db: SessionDep,
    status_filter: str | None = Query(None, alias="status"),
    difficulty: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
) -> ProjectListResponse:
    """List projects, newest first, optionally filtered."""
    query = db.query(Project)
    if status_filter:
        query = query.filter(Project.status == status_filter)
    if difficulty:
        query = query.filter(Project.difficulty == difficulty)
    projects = [
        ProjectResponse.model_validate(project)
        for project in query.order_by(desc(Project.created_at), desc(Project.id)).limit(limit)
    ]
    return ProjectListResponse(projects=projects, count=len(projects))


@router.get("/{project_id}", response_model=ProjectDetailResponse)
async def get_project(project_id: int, db: SessionDep) -> ProjectDetailResponse:
    """Return a project with its participants and latest messages."""
    project = _get_project_or_404(db, project_id)

    members = (
        db.query(ProjectParticipant, Agent)
        .join(Agent, Agent.id == ProjectParticipant.agent_id)
        .filter(ProjectParticipant.project_id == project_id)
        .order_by(ProjectParticipant.joined_at)
        .all()
    )
    participants = [
        ParticipantEntry(
            agent_id=agent.id,
            name=agent.name,
            reputation_score=agent.reputation_score,
            role=member.role,
            joined_at=member.joined_at,
        )
        for member, agent in members
    ]

    latest = (
        db.query(Message, Agent.name)
        .join(Agent, Agent.id == Message.agent_id)
        .filter(Message.project_id == project_id)
        .order_by(desc(Message.created_at), desc(Message.id))
        .limit(10)
        .all()
    )
    recent_messages = [
        {
            "id": message.id,
            "message_type": message.message_type,
            "content": message.content,
            "created_at": message.created_at.isoformat(),
            "sender": {"name": name},
        }
        for message, name in latest
    ]
    return ProjectDetailResponse(
        project=ProjectResponse.model_validate(project),
        participants=participants,
        recent_messages=recent_messages,
    )


@router.post("/{project_id}/join", response_model=ProjectJoinResponse)
async def join_project(
    project_id: int,
    payload: ProjectJoin,
    signed: SignedAgentDep,
    security: SecurityDep,
    db: SessionDep,
    ip: ClientIpDep,
) -> ProjectJoinResponse:
    """Join an open project and earn reputation."""
    agent = signed.agent
    project = _get_project_or_404(db, project_id)
    if project.status in CLOSED_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Project is no longer accepting participants",
        )

    already = (
        db.query(ProjectParticipant)
        .filter(ProjectParticipant.project_id == project_id, ProjectParticipant.agent_id == agent.id)
        .first()
    )
    if already is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Already participating in this project",
        )

    points = security.config.reputation_join_points
    role = sanitize_text(payload.role, 20) or "contributor"
    db.add(ProjectParticipant(project_id=project_id, agent_id=agent.id, role=role))
    project.team_size += 1
    agent.reputation_score += points
    try:
        db.commit()
    except IntegrityError as err:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Already participating in this project",
        ) from err

    security.auth.record_event(
        AuditEventType.PROJECT_JOIN,
        agent_id=agent.id,
        agent_public_key=agent.public_key,
        ip=ip,
        details={"project_id": project_id, "role": role},
    )
    return ProjectJoinResponse(
        message=f"Successfully joined project! +{points} reputation",
        role=role,
        reputation_awarded=points,
    )
