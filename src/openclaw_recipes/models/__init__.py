"""SQLAlchemy models for the OpenClaw Recipes application."""

from .agent import Agent
from .message import Message
from .project import Project, ProjectParticipant

__all__ = [
    "Agent",
    "Message",
    "Project", "ProjectParticipant",
]
