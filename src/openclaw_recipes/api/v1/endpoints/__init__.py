"""API endpoint modules for version 1."""

from .agents import router as agents_router
from .auth import router as auth_router
from .messages import router as messages_router
from .projects import router as projects_router
from .system import router as system_router

__all__ = [
    "agents_router",
    "auth_router",
    "messages_router",
    "projects_router",
    "system_router",
]
