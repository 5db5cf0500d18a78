"""Version 1 API endpoints."""

from .endpoints import (
    agents_router,
    auth_router,
    messages_router,
    projects_router,
    system_router,
)

__all__ = [
    "agents_router",
    "auth_router",
    "messages_router",
    "projects_router",
    "system_router",
]
