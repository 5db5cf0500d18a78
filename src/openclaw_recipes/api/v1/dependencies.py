"""Shared API dependencies for authentication and common functionality."""

from __future__ import annotations

import hmac
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from openclaw_recipes.core.security import CanonicalRequest, SignatureEnvelope
from openclaw_recipes.db.session import get_db
from openclaw_recipes.models import Agent
from openclaw_recipes.services.auth import SecurityCheck, SecurityError
from openclaw_recipes.services.container import SecurityServices
from openclaw_recipes.services.rate_limit import get_client_ip

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]

_STATUS_FOR_ERROR = {
    SecurityError.INVALID_CHALLENGE: status.HTTP_401_UNAUTHORIZED,
    SecurityError.INVALID_SIGNATURE: status.HTTP_401_UNAUTHORIZED,
    SecurityError.REPLAY_DETECTED: status.HTTP_401_UNAUTHORIZED,
    SecurityError.INVALID_PROOF_OF_WORK: status.HTTP_400_BAD_REQUEST,
    SecurityError.CONTENT_BLOCKED: status.HTTP_400_BAD_REQUEST,
    SecurityError.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
}


def get_security_services(request: Request) -> SecurityServices:
    """Return the security services built for this application."""
    return request.app.state.security


SecurityDep = Annotated[SecurityServices, Depends(get_security_services)]


def get_ip(request: Request) -> str:
    return get_client_ip(request)


ClientIpDep = Annotated[str, Depends(get_ip)]


def raise_for_check(check: SecurityCheck) -> None:
    """Translate a failed security check into an HTTP error.

    Raises:
        HTTPException: If `check` did not pass.
    """
    if check.ok:
        return
    error = check.error or SecurityError.INVALID_SIGNATURE
    detail: dict[str, object] = {"error": check.reason, "code": error.value}
    headers: dict[str, str] | None = None
    if error is SecurityError.RATE_LIMITED and check.reset_at is not None:
        detail["resetAt"] = check.reset_at
        headers = {"X-RateLimit-Reset": str(check.reset_at)}
    if error is SecurityError.CONTENT_BLOCKED:
        detail["warnings"] = list(check.warnings)
    raise HTTPException(status_code=_STATUS_FOR_ERROR[error], detail=detail, headers=headers)


def get_agent_by_public_key(db: Session, public_key: str) -> Agent:
    """Load the agent currently holding `public_key`.

    Raises:
        HTTPException: If no agent holds the key.
    """
    agent = db.query(Agent).filter(Agent.public_key == public_key).first()
    if agent is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Agent not found. Please register first.",
        )
    return agent


@dataclass(frozen=True)
class SignedAgent:
    """An agent whose request-bound signature has been verified."""

    agent: Agent
    envelope: SignatureEnvelope


async def get_signed_agent(
    request: Request,
    security: SecurityDep,
    db: SessionDep,
    ip: ClientIpDep,
    x_agent_public_key: Annotated[str, Header()],
    x_agent_signature: Annotated[str, Header()],
    x_agent_timestamp: Annotated[int, Header()],
    x_agent_nonce: Annotated[str, Header(min_length=8, max_length=128)],
) -> SignedAgent:
    """Verify the request-bound signature headers against the raw request.

    The signed string covers method, path, a SHA-256 of the body, the
    timestamp and the nonce, so a captured signature cannot be reused for a
    different request or replayed for the same one.
    """
    canonical = CanonicalRequest(
        method=request.method,
        path=request.url.path,
        body=await request.body(),
        timestamp=x_agent_timestamp,
        nonce=x_agent_nonce,
    )
    envelope = SignatureEnvelope(
        public_key=x_agent_public_key,
        signature=x_agent_signature,
        message=canonical.canonical(),
    )
    raise_for_check(security.auth.verify_signed_request(envelope, canonical, ip=ip))
    return SignedAgent(agent=get_agent_by_public_key(db, x_agent_public_key), envelope=envelope)


SignedAgentDep = Annotated[SignedAgent, Depends(get_signed_agent)]


def require_admin(
    security: SecurityDep,
    x_admin_token: Annotated[str | None, Header()] = None,
) -> None:
    """Guard operator endpoints; they stay closed when no token is configured.

    Raises:
        HTTPException: If the token is missing, wrong or not configured.
    """
    expected = security.config.admin_token
    authorized = bool(expected and x_admin_token) and hmac.compare_digest(
        x_admin_token.encode(), expected.encode()
    )
    if not authorized:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )


AdminDep = Depends(require_admin)
