"""Fixed-window rate limiting.

A bucket opens on the first call for an identifier and admits up to `limit`
calls until `reset_at`; later calls are denied with the same `reset_at` so
clients know when to retry. Bursts of up to twice the limit are possible
across a window boundary.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from threading import Lock
from typing import Any, Protocol

from starlette.requests import Request

from openclaw_recipes.core.clock import Clock, now_ms
from openclaw_recipes.core.settings import Settings

logger = logging.getLogger(__name__)

AGENT_REGISTER = "agent_register"
PROJECT_CREATE = "project_create"
MESSAGE_SEND = "message_send"
CHALLENGE_GET = "challenge_get"
ROTATE_KEY = "rotate_key"


@dataclass(frozen=True)
class RateLimitConfig:
    limit: int
    window_ms: int


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: int


@dataclass
class RateLimitBucket:
    count: int
    reset_at: int


def rate_limits_from_settings(settings: Settings) -> dict[str, RateLimitConfig]:
    """Build the named per-operation limits from configuration."""
    return {
        AGENT_REGISTER: RateLimitConfig(
            settings.rate_limit_register_limit,
            settings.rate_limit_register_window_seconds * 1000,
        ),
        PROJECT_CREATE: RateLimitConfig(
            settings.rate_limit_project_limit,
            settings.rate_limit_project_window_seconds * 1000,
        ),
        MESSAGE_SEND: RateLimitConfig(
            settings.rate_limit_message_limit,
            settings.rate_limit_message_window_seconds * 1000,
        ),
        CHALLENGE_GET: RateLimitConfig(
            settings.rate_limit_challenge_limit,
            settings.rate_limit_challenge_window_seconds * 1000,
        ),
        ROTATE_KEY: RateLimitConfig(
            settings.rate_limit_rotate_key_limit,
            settings.rate_limit_rotate_key_window_seconds * 1000,
        ),
    }


def sweep_buckets(now: int, buckets: Mapping[str, RateLimitBucket]) -> dict[str, RateLimitBucket]:
    """Return the buckets whose window is still open at `now`."""
    return {key: bucket for key, bucket in buckets.items() if now < bucket.reset_at}


class RateLimitBackend(Protocol):
    def hit(self, identifier: str, config: RateLimitConfig, now: int) -> RateLimitResult: ...

    def stats(self) -> dict[str, Any]: ...


class MemoryRateLimitBackend:
    """In-process buckets; expired windows are dropped on each call."""

    def __init__(self) -> None:
        self._buckets: dict[str, RateLimitBucket] = {}
        self._lock = Lock()

    def hit(self, identifier: str, config: RateLimitConfig, now: int) -> RateLimitResult:
        with self._lock:
            self._buckets = sweep_buckets(now, self._buckets)
            bucket = self._buckets.get(identifier)
            if bucket is None:
                bucket = RateLimitBucket(count=1, reset_at=now + config.window_ms)
                self._buckets[identifier] = bucket
                return RateLimitResult(True, config.limit - 1, bucket.reset_at)

            if bucket.count >= config.limit:
                return RateLimitResult(False, 0, bucket.reset_at)

            bucket.count += 1
            return RateLimitResult(True, config.limit - bucket.count, bucket.reset_at)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "active": len(self._buckets),
                "entries": [
                    {"identifier": key, "count": bucket.count, "reset_at": bucket.reset_at}
                    for key, bucket in self._buckets.items()
                ],
            }


class RedisRateLimitBackend:
    """Shared buckets using INCR with a millisecond expiry on the first hit."""

    def __init__(self, client: Any, *, prefix: str = "recipes") -> None:
        self._redis = client
        self._prefix = prefix

    def hit(self, identifier: str, config: RateLimitConfig, now: int) -> RateLimitResult:
        key = f"{self._prefix}:ratelimit:{identifier}"
        pipe = self._redis.pipeline()
        pipe.incr(key)
        pipe.pttl(key)
        count, ttl_ms = pipe.execute()
        if int(count) == 1 or int(ttl_ms) < 0:
            self._redis.pexpire(key, config.window_ms)
            ttl_ms = config.window_ms
        reset_at = now + int(ttl_ms)
        if int(count) > config.limit:
            return RateLimitResult(False, 0, reset_at)
        return RateLimitResult(True, config.limit - int(count), reset_at)

    def stats(self) -> dict[str, Any]:
        active = sum(1 for _ in self._redis.scan_iter(match=f"{self._prefix}:ratelimit:*"))
        return {"active": active, "entries": []}


class RateLimiter:
    """Generic limiter; callers choose identifier composition and thresholds."""

    def __init__(self, backend: RateLimitBackend | None = None, *, clock: Clock = now_ms) -> None:
        self._backend = backend or MemoryRateLimitBackend()
        self._clock = clock

    def check(self, identifier: str, config: RateLimitConfig) -> RateLimitResult:
        """Count one call against `identifier` and report whether it is allowed."""
        result = self._backend.hit(identifier, config, self._clock())
        if not result.allowed:
            logger.debug("Rate limit reached for %s until %d", identifier, result.reset_at)
        return result

    def stats(self) -> dict[str, Any]:
        return self._backend.stats()


def get_client_ip(request: Request) -> str:
    """Return the caller address, honouring proxy forwarding headers."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    if request.client is not None and request.client.host:
        return request.client.host
    return "unknown"
