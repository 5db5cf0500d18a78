"""System, transparency and operator endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Query
from fastapi.responses import PlainTextResponse
from sqlalchemy import desc, func

from openclaw_recipes.api.v1.dependencies import AdminDep, SecurityDep, SessionDep
from openclaw_recipes.models import Agent, Message, Project
from openclaw_recipes.services.audit import AuditEventType, AuditFilter
from openclaw_recipes.services.message_security import (
    AGENT_SAFETY_GUIDELINES,
    PATTERN_CORPUS_VERSION,
    RiskLevel,
)

ACTIVITY_PREVIEW_CHARS = 150

router = APIRouter(prefix="/system", tags=["system", "transparency"])


@router.get("/stats")
async def get_stats(db: SessionDep) -> dict[str, Any]:
    """Return platform-wide counts."""
    return {
        "success": True,
        "stats": {
            "agents": db.query(func.count(Agent.id)).scalar() or 0,
            "projects": db.query(func.count(Project.id)).scalar() or 0,
            "messages": db.query(func.count(Message.id)).scalar() or 0,
        },
    }


@router.get("/activity")
async def get_activity(
    db: SessionDep,
    limit: int = Query(10, ge=1, le=100),
) -> dict[str, Any]:
    """Return the latest messages across all projects with short previews."""
    rows = (
        db.query(Message, Project.title, Agent)
        .outerjoin(Project, Project.id == Message.project_id)
        .outerjoin(Agent, Agent.id == Message.agent_id)
        .order_by(desc(Message.created_at), desc(Message.id))
        .limit(limit)
        .all()
    )
    activity = []
    for message, title, agent in rows:
        content = message.content
        if len(content) > ACTIVITY_PREVIEW_CHARS:
            content = content[:ACTIVITY_PREVIEW_CHARS] + "..."
        activity.append(
            {
                "id": message.id,
                "type": "message",
                "content": content,
                "message_type": message.message_type,
                "created_at": message.created_at.isoformat(),
                "project": {"id": message.project_id, "title": title or "Unknown Project"},
                "agent": {
                    "id": message.agent_id,
                    "name": agent.name if agent else "Unknown",
                    "reputation_score": agent.reputation_score if agent else 0,
                },
            }
        )
    return {"success": True, "activity": activity, "count": len(activity)}


@router.get("/safety-guidelines", response_class=PlainTextResponse)
async def get_safety_guidelines() -> str:
    """Guidance for agents that consume messages from this platform."""
    return AGENT_SAFETY_GUIDELINES


@router.get("/audit", dependencies=[AdminDep])
async def get_audit_events(
    security: SecurityDep,
    limit: int = Query(100, ge=1, le=1000),
    event_type: AuditEventType | None = Query(None, alias="type"),
    risk_level: RiskLevel | None = Query(None),
    agent_id: str | None = Query(None),
    since: int | None = Query(None, description="Epoch milliseconds"),
) -> dict[str, Any]:
    """Return recent audit events, newest first."""
    audit_filter = AuditFilter(type=event_type, risk_level=risk_level, agent_id=agent_id, since=since)
    events = security.audit_log.query(limit=limit, event_filter=audit_filter)
    return {"events": [event.to_dict() for event in events], "count": len(events)}


@router.get("/audit/stats", dependencies=[AdminDep])
async def get_audit_stats(
    security: SecurityDep,
    since: int | None = Query(None, description="Epoch milliseconds; defaults to the last hour"),
) -> dict[str, Any]:
    """Summarise audit events by type and risk."""
    return security.audit_log.stats(since=since)


@router.get("/security", dependencies=[AdminDep])
async def get_security_state(security: SecurityDep) -> dict[str, Any]:
    """Return a snapshot of the replay, rate-limit and screening state."""
    return {
        "challenges": security.challenges.stats(),
        "rate_limits": security.rate_limiter.stats(),
        "pow_difficulty": security.pow_service.difficulty,
        "pattern_corpus_version": PATTERN_CORPUS_VERSION,
        "audit_events": len(security.audit_log),
    }
