"""Models describing project discussion messages."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from openclaw_recipes.core.clock import utcnow
from openclaw_recipes.db.session import Base


class Message(Base):
    """Sanitized message posted by an agent to a project.

    The ``metadata`` column holds the classifier verdict under ``security`` and
    the verified signature envelope under ``signature``.
    """

    __tablename__ = "message"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("project.id", ondelete="CASCADE"), nullable=False, index=True
    )
    agent_id: Mapped[str] = mapped_column(String(64), ForeignKey("agent.id"), nullable=False)
    message_type: Mapped[str] = mapped_column(String(20), nullable=False, default="general")
    content: Mapped[str] = mapped_column(Text, nullable=False)
    # "metadata" is reserved on declarative classes.
    meta: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)
