"""Server-side challenge and nonce tracking.

Challenges are single use: a token is removed atomically the first time it is
validated, so a captured signature over it can never be replayed. Nonces for
request-bound signatures are remembered per identity for a retention window.
Expired entries are swept on each call instead of by a background timer.
"""

from __future__ import annotations

import json
import logging
import secrets
from collections.abc import Mapping
from dataclasses import dataclass
from threading import Lock
from typing import Any, Protocol

from openclaw_recipes.core.clock import Clock, now_ms
from openclaw_recipes.core.security import encode_base64

logger = logging.getLogger(__name__)

CHALLENGE_BYTES = 32
DEFAULT_CHALLENGE_TTL_MS = 5 * 60 * 1000
DEFAULT_NONCE_RETENTION_MS = 60 * 60 * 1000

REASON_NOT_FOUND = "not found or already used"
REASON_EXPIRED = "expired"
REASON_REPLAY = "replay detected"


@dataclass(frozen=True)
class Challenge:
    """A random token an agent must sign to prove key possession."""

    value: str
    issued_at: int
    expires_at: int

    def is_expired(self, now: int) -> bool:
        return now > self.expires_at


@dataclass(frozen=True)
class NonceRecord:
    identity: str
    nonce: str
    used_at: int


@dataclass(frozen=True)
class ChallengeCheck:
    """Outcome of consuming a challenge or nonce."""

    valid: bool
    reason: str | None = None


def sweep_challenges(now: int, entries: Mapping[str, Challenge]) -> dict[str, Challenge]:
    """Return the challenges that have not expired at `now`."""
    return {key: entry for key, entry in entries.items() if not entry.is_expired(now)}


def sweep_nonces(
    now: int,
    entries: Mapping[tuple[str, str], NonceRecord],
    retention_ms: int,
) -> dict[tuple[str, str], NonceRecord]:
    """Return the nonce records still inside the retention window at `now`."""
    return {
        key: record
        for key, record in entries.items()
        if now - record.used_at <= retention_ms
    }


class ChallengeBackend(Protocol):
    """Storage primitives the challenge store needs from its backend."""

    def put_challenge(self, challenge: Challenge) -> None: ...

    def pop_challenge(self, token: str) -> Challenge | None: ...

    def add_nonce(self, record: NonceRecord) -> bool: ...

    def sweep(self, now: int) -> None: ...

    def stats(self) -> dict[str, Any]: ...


class MemoryChallengeBackend:
    """In-process tables guarded by a lock; correct for a single instance."""

    def __init__(self, nonce_retention_ms: int = DEFAULT_NONCE_RETENTION_MS) -> None:
        self._challenges: dict[str, Challenge] = {}
        self._nonces: dict[tuple[str, str], NonceRecord] = {}
        self._nonce_retention_ms = nonce_retention_ms
        self._lock = Lock()

    def put_challenge(self, challenge: Challenge) -> None:
        with self._lock:
            self._challenges[challenge.value] = challenge

    def pop_challenge(self, token: str) -> Challenge | None:
        with self._lock:
            return self._challenges.pop(token, None)

    def add_nonce(self, record: NonceRecord) -> bool:
        key = (record.identity, record.nonce)
        with self._lock:
            if key in self._nonces:
                return False
            self._nonces[key] = record
            return True

    def sweep(self, now: int) -> None:
        with self._lock:
            self._challenges = sweep_challenges(now, self._challenges)
            self._nonces = sweep_nonces(now, self._nonces, self._nonce_retention_ms)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            issued = [entry.issued_at for entry in self._challenges.values()]
            return {
                "active": len(issued),
                "oldest_issued_at": min(issued) if issued else None,
                "tracked_nonces": len(self._nonces),
            }


class RedisChallengeBackend:
    """Redis-backed tables for deployments with more than one instance.

    Keys expire on their own; expired challenges are kept for a short grace
    period so that late submissions report "expired" rather than "not found".
    """

    EXPIRED_GRACE_MS = 60_000

    def __init__(
        self,
        client: Any,
        *,
        nonce_retention_ms: int = DEFAULT_NONCE_RETENTION_MS,
        prefix: str = "recipes",
    ) -> None:
        self._redis = client
        self._nonce_retention_ms = nonce_retention_ms
        self._prefix = prefix

    def _challenge_key(self, token: str) -> str:
        return f"{self._prefix}:challenge:{token}"

    def _nonce_key(self, identity: str, nonce: str) -> str:
        return f"{self._prefix}:nonce:{identity}:{nonce}"

    def put_challenge(self, challenge: Challenge) -> None:
        ttl_ms = max(1, challenge.expires_at - challenge.issued_at) + self.EXPIRED_GRACE_MS
        payload = json.dumps({"issued_at": challenge.issued_at, "expires_at": challenge.expires_at})
        self._redis.set(self._challenge_key(challenge.value), payload, px=ttl_ms)

    def pop_challenge(self, token: str) -> Challenge | None:
        # GETDEL is atomic: concurrent consumers of one token see at most one value.
        raw = self._redis.getdel(self._challenge_key(token))
        if raw is None:
            return None
        data = json.loads(raw)
        return Challenge(value=token, issued_at=int(data["issued_at"]), expires_at=int(data["expires_at"]))

    def add_nonce(self, record: NonceRecord) -> bool:
        created = self._redis.set(
            self._nonce_key(record.identity, record.nonce),
            record.used_at,
            nx=True,
            px=self._nonce_retention_ms,
        )
        return bool(created)

    def sweep(self, now: int) -> None:
        # Redis expires keys itself.
        return None

    def stats(self) -> dict[str, Any]:
        active = sum(1 for _ in self._redis.scan_iter(match=self._challenge_key("*")))
        return {"active": active, "oldest_issued_at": None, "tracked_nonces": None}


class ChallengeStore:
    """Issue, validate and single-use-consume authentication challenges."""

    def __init__(
        self,
        backend: ChallengeBackend | None = None,
        *,
        ttl_ms: int = DEFAULT_CHALLENGE_TTL_MS,
        nonce_retention_ms: int = DEFAULT_NONCE_RETENTION_MS,
        clock: Clock = now_ms,
    ) -> None:
        self._backend = backend or MemoryChallengeBackend(nonce_retention_ms)
        self._ttl_ms = ttl_ms
        self._clock = clock

    @property
    def ttl_ms(self) -> int:
        return self._ttl_ms

    def issue(self) -> Challenge:
        """Mint, store and return a fresh challenge."""
        now = self._clock()
        self._backend.sweep(now)
        challenge = Challenge(
            value=encode_base64(secrets.token_bytes(CHALLENGE_BYTES)),
            issued_at=now,
            expires_at=now + self._ttl_ms,
        )
        self._backend.put_challenge(challenge)
        return challenge

    def validate_and_consume(self, token: str) -> ChallengeCheck:
        """Consume `token` if it was issued, is unexpired and unused.

        The entry is removed before it is inspected, so two concurrent callers
        presenting the same token cannot both succeed.
        """
        now = self._clock()
        entry = self._backend.pop_challenge(token)
        self._backend.sweep(now)
        if entry is None:
            return ChallengeCheck(valid=False, reason=REASON_NOT_FOUND)
        if entry.is_expired(now):
            return ChallengeCheck(valid=False, reason=REASON_EXPIRED)
        return ChallengeCheck(valid=True)

    def check_and_consume_nonce(self, identity: str, nonce: str) -> ChallengeCheck:
        """Record `(identity, nonce)`; reject it if it was already seen."""
        now = self._clock()
        self._backend.sweep(now)
        if not self._backend.add_nonce(NonceRecord(identity=identity, nonce=nonce, used_at=now)):
            logger.info("Nonce replay rejected for identity %s", identity[:12])
            return ChallengeCheck(valid=False, reason=REASON_REPLAY)
        return ChallengeCheck(valid=True)

    def stats(self) -> dict[str, Any]:
        """Return counts for monitoring."""
        return self._backend.stats()
