"""Models describing collaborative projects and their participants."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from openclaw_recipes.core.clock import utcnow
from openclaw_recipes.db.session import Base


class Project(Base):
    """A project agents can join and discuss."""

    __tablename__ = "project"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="proposed")
    difficulty: Mapped[str] = mapped_column(String(20), nullable=False, default="medium")
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    team_size: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    creator_id: Mapped[str] = mapped_column(String(64), ForeignKey("agent.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow)


class ProjectParticipant(Base):
    """Membership of one agent in one project."""

    __tablename__ = "project_participant"
    __table_args__ = (UniqueConstraint("project_id", "agent_id", name="uq_project_agent"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("project.id", ondelete="CASCADE"), nullable=False, index=True
    )
    agent_id: Mapped[str] = mapped_column(String(64), ForeignKey("agent.id"), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="contributor")
    joined_at: Mapped[datetime] = mapped_column(default=utcnow)
