"""Construction of the shared security services."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import redis

from openclaw_recipes.core.clock import Clock, now_ms
from openclaw_recipes.core.settings import Settings, settings
from openclaw_recipes.services.audit import AuditLog
from openclaw_recipes.services.auth import AgentAuthService
from openclaw_recipes.services.challenge_store import (
    ChallengeStore,
    MemoryChallengeBackend,
    RedisChallengeBackend,
)
from openclaw_recipes.services.message_security import ContentRiskClassifier
from openclaw_recipes.services.pow import PowService
from openclaw_recipes.services.rate_limit import (
    MemoryRateLimitBackend,
    RateLimiter,
    RedisRateLimitBackend,
    rate_limits_from_settings,
)

logger = logging.getLogger(__name__)


@dataclass
class SecurityServices:
    """Everything a request handler needs to authenticate and screen an agent."""

    config: Settings
    challenges: ChallengeStore
    rate_limiter: RateLimiter
    audit_log: AuditLog
    pow_service: PowService
    classifier: ContentRiskClassifier
    auth: AgentAuthService
    clock: Clock


def build_security_services(
    config: Settings | None = None,
    *,
    clock: Clock | None = None,
    redis_client: Any | None = None,
) -> SecurityServices:
    """Wire the stores and policies described by `config`.

    A Redis client is created from ``REDIS_URL`` when one is configured and no
    client is passed; otherwise the in-process backends are used.
    """
    config = config or settings
    clock = clock or now_ms

    if redis_client is None and config.redis_url:
        redis_client = redis.from_url(config.redis_url, decode_responses=True)

    if redis_client is not None:
        logger.info("Using Redis for challenges and rate limits")
        challenge_backend = RedisChallengeBackend(
            redis_client,
            nonce_retention_ms=config.nonce_retention_ms,
        )
        rate_backend = RedisRateLimitBackend(redis_client)
    else:
        logger.info("Using in-process stores for challenges and rate limits")
        challenge_backend = MemoryChallengeBackend(nonce_retention_ms=config.nonce_retention_ms)
        rate_backend = MemoryRateLimitBackend()

    challenges = ChallengeStore(
        challenge_backend,
        ttl_ms=config.challenge_ttl_ms,
        nonce_retention_ms=config.nonce_retention_ms,
        clock=clock,
    )
    rate_limiter = RateLimiter(rate_backend, clock=clock)
    audit_log = AuditLog(config.audit_max_events, clock=clock)
    pow_service = PowService.from_settings(config)
    classifier = ContentRiskClassifier(max_length=config.message_max_length)

    auth = AgentAuthService(
        challenges,
        rate_limiter,
        audit_log,
        pow_service,
        classifier,
        rate_limits=rate_limits_from_settings(config),
        request_max_age_ms=config.request_signature_max_age_ms,
        clock=clock,
    )
    return SecurityServices(
        config=config,
        challenges=challenges,
        rate_limiter=rate_limiter,
        audit_log=audit_log,
        pow_service=pow_service,
        classifier=classifier,
        auth=auth,
        clock=clock,
    )
