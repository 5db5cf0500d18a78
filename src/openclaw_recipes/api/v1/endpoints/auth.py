"""Challenge issuance for agent authentication."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Response, status

from openclaw_recipes.api.v1.dependencies import ClientIpDep, SecurityDep, raise_for_check
from openclaw_recipes.schemas.auth import ChallengeResponse

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.get("/challenge", response_model=ChallengeResponse)
async def get_challenge(
    response: Response,
    security: SecurityDep,
    ip: ClientIpDep,
) -> ChallengeResponse:
    """Issue a single-use challenge.

    The challenge must be signed for any challenge-bound operation and, on
    registration, also solved as a proof-of-work puzzle.
    """
    check = security.auth.issue_challenge(ip)
    raise_for_check(check)

    challenge = check.challenge
    if challenge is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Challenge could not be issued",
        )
    if check.rate_limit is not None:
        response.headers["X-RateLimit-Remaining"] = str(check.rate_limit.remaining)
        response.headers["X-RateLimit-Reset"] = str(check.rate_limit.reset_at)

    return ChallengeResponse(
        challenge=challenge.value,
        expires_at=challenge.expires_at,
        expires_in=security.challenges.ttl_ms // 1000,
        pow_difficulty=security.pow_service.difficulty,
    )
