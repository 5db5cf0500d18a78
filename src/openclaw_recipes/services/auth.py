"""Agent authentication workflows.

`AgentAuthService` composes the challenge store, proof-of-work policy,
signature verification, rate limiter, content classifier and audit log into
the checks the API layer runs before it touches storage. Every check returns a
`SecurityCheck`; nothing here raises for a rejected request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from openclaw_recipes.core.clock import Clock, now_ms
from openclaw_recipes.core.pow import ProofOfWork
from openclaw_recipes.core.security import (
    DEFAULT_REQUEST_MAX_AGE_MS,
    CanonicalRequest,
    SignatureEnvelope,
    verify_agent_signature,
    verify_request_signature,
)
from openclaw_recipes.services.audit import AuditEventType, AuditLog
from openclaw_recipes.services.challenge_store import Challenge, ChallengeStore
from openclaw_recipes.services.message_security import (
    ContentRiskClassifier,
    ContentVerdict,
    RiskLevel,
)
from openclaw_recipes.services.pow import PowService
from openclaw_recipes.services.rate_limit import (
    AGENT_REGISTER,
    CHALLENGE_GET,
    RateLimitConfig,
    RateLimiter,
    RateLimitResult,
)

logger = logging.getLogger(__name__)


class SecurityError(str, Enum):
    INVALID_CHALLENGE = "invalid_challenge"
    INVALID_SIGNATURE = "invalid_signature"
    INVALID_PROOF_OF_WORK = "invalid_proof_of_work"
    RATE_LIMITED = "rate_limited"
    REPLAY_DETECTED = "replay_detected"
    CONTENT_BLOCKED = "content_blocked"


@dataclass(frozen=True)
class SecurityCheck:
    """Structured outcome of one security gate."""

    ok: bool
    error: SecurityError | None = None
    reason: str | None = None
    reset_at: int | None = None
    warnings: list[str] = field(default_factory=list)
    challenge: Challenge | None = None
    verdict: ContentVerdict | None = None
    rate_limit: RateLimitResult | None = None

    @classmethod
    def passed(cls, **kwargs: Any) -> SecurityCheck:
        return cls(ok=True, **kwargs)

    @classmethod
    def failed(cls, error: SecurityError, reason: str, **kwargs: Any) -> SecurityCheck:
        return cls(ok=False, error=error, reason=reason, **kwargs)


class AgentAuthService:
    """Runs the challenge, proof-of-work, signature, replay and rate-limit gates."""

    def __init__(
        self,
        challenges: ChallengeStore,
        rate_limiter: RateLimiter,
        audit_log: AuditLog,
        pow_service: PowService,
        classifier: ContentRiskClassifier,
        *,
        rate_limits: Mapping[str, RateLimitConfig],
        request_max_age_ms: int = DEFAULT_REQUEST_MAX_AGE_MS,
        clock: Clock = now_ms,
    ) -> None:
        self.challenges = challenges
        self.rate_limiter = rate_limiter
        self.audit_log = audit_log
        self.pow_service = pow_service
        self.classifier = classifier
        self.rate_limits = dict(rate_limits)
        self._request_max_age_ms = request_max_age_ms
        self._clock = clock

    # --- audit ----------------------------------------------------------------
    def record_event(
        self,
        event_type: AuditEventType,
        risk_level: RiskLevel = RiskLevel.LOW,
        **kwargs: Any,
    ) -> None:
        """Record an audit event; failures are logged and never propagate."""
        try:
            self.audit_log.record(event_type, risk_level, **kwargs)
        except Exception:
            logger.exception("Failed to record audit event %s", event_type)

    # --- individual gates -----------------------------------------------------
    def enforce_rate_limit(
        self,
        operation: str,
        identifier: str,
        *,
        ip: str | None = None,
        agent_id: str | None = None,
    ) -> SecurityCheck:
        """Count one `operation` call for `identifier` against its named limit."""
        config = self.rate_limits[operation]
        result = self.rate_limiter.check(f"{operation}:{identifier}", config)
        if result.allowed:
            return SecurityCheck.passed(rate_limit=result)

        self.record_event(
            AuditEventType.RATE_LIMIT_HIT,
            RiskLevel.MEDIUM,
            ip=ip,
            agent_id=agent_id,
            details={"operation": operation, "reset_at": result.reset_at},
        )
        return SecurityCheck.failed(
            SecurityError.RATE_LIMITED,
            "Rate limit exceeded",
            reset_at=result.reset_at,
            rate_limit=result,
        )

    def consume_challenge(self, token: str, *, ip: str | None = None, action: str) -> SecurityCheck:
        result = self.challenges.validate_and_consume(token)
        if result.valid:
            return SecurityCheck.passed()

        self.record_event(
            AuditEventType.AUTH_FAIL,
            RiskLevel.MEDIUM,
            ip=ip,
            details={"action": action, "reason": result.reason},
        )
        return SecurityCheck.failed(SecurityError.INVALID_CHALLENGE, f"Challenge {result.reason}")

    def verify_signature(
        self,
        envelope: SignatureEnvelope,
        expected_message: str,
        *,
        ip: str | None = None,
        action: str,
    ) -> SecurityCheck:
        if verify_agent_signature(envelope, expected_message):
            return SecurityCheck.passed()

        self.record_event(
            AuditEventType.AUTH_FAIL,
            RiskLevel.HIGH,
            ip=ip,
            agent_public_key=envelope.public_key,
            details={"action": action, "reason": "invalid_signature"},
        )
        return SecurityCheck.failed(SecurityError.INVALID_SIGNATURE, "Invalid signature")

    def verify_proof_of_work(
        self,
        challenge: str,
        solution: ProofOfWork,
        *,
        ip: str | None = None,
        public_key: str | None = None,
    ) -> SecurityCheck:
        if self.pow_service.verify(challenge, solution):
            return SecurityCheck.passed()

        self.record_event(
            AuditEventType.POW_FAIL,
            RiskLevel.MEDIUM,
            ip=ip,
            agent_public_key=public_key,
            details={"difficulty": self.pow_service.difficulty},
        )
        return SecurityCheck.failed(
            SecurityError.INVALID_PROOF_OF_WORK,
            f"Invalid proof of work (difficulty {self.pow_service.difficulty})",
        )

    # --- composed flows -------------------------------------------------------
    def issue_challenge(self, ip: str) -> SecurityCheck:
        """Rate-limit by source address, then mint a challenge."""
        limited = self.enforce_rate_limit(CHALLENGE_GET, ip, ip=ip)
        if not limited.ok:
            return limited

        challenge = self.challenges.issue()
        self.record_event(AuditEventType.AUTH_CHALLENGE, RiskLevel.LOW, ip=ip)
        return SecurityCheck.passed(challenge=challenge, rate_limit=limited.rate_limit)

    def verify_registration(
        self,
        challenge: str,
        envelope: SignatureEnvelope,
        proof: ProofOfWork,
        *,
        ip: str,
    ) -> SecurityCheck:
        """Challenge, proof-of-work, signature over the challenge, then rate limit."""
        steps = (
            lambda: self.consume_challenge(challenge, ip=ip, action="register"),
            lambda: self.verify_proof_of_work(challenge, proof, ip=ip, public_key=envelope.public_key),
            lambda: self.verify_signature(envelope, challenge, ip=ip, action="register"),
            lambda: self.enforce_rate_limit(AGENT_REGISTER, ip, ip=ip),
        )
        for step in steps:
            outcome = step()
            if not outcome.ok:
                self.record_event(
                    AuditEventType.AGENT_REGISTER_FAIL,
                    RiskLevel.MEDIUM,
                    ip=ip,
                    agent_public_key=envelope.public_key,
                    details={"error": outcome.error.value if outcome.error else None},
                )
                return outcome
        return SecurityCheck.passed()

    def authenticate(
        self,
        challenge: str,
        envelope: SignatureEnvelope,
        expected_message: str,
        *,
        ip: str | None = None,
        action: str,
    ) -> SecurityCheck:
        """Consume a challenge and verify a signature over `expected_message`.

        The challenge is consumed first, so replaying a valid signature with an
        already used challenge fails even though the signature still verifies.
        """
        consumed = self.consume_challenge(challenge, ip=ip, action=action)
        if not consumed.ok:
            return consumed
        return self.verify_signature(envelope, expected_message, ip=ip, action=action)

    def verify_signed_request(
        self,
        envelope: SignatureEnvelope,
        request: CanonicalRequest,
        *,
        ip: str | None = None,
    ) -> SecurityCheck:
        """Verify a request-bound signature and burn its nonce."""
        if not verify_request_signature(
            envelope,
            request,
            max_age_ms=self._request_max_age_ms,
            now=self._clock(),
        ):
            self.record_event(
                AuditEventType.AUTH_FAIL,
                RiskLevel.HIGH,
                ip=ip,
                agent_public_key=envelope.public_key,
                details={"action": f"{request.method} {request.path}", "reason": "invalid_request_signature"},
            )
            return SecurityCheck.failed(
                SecurityError.INVALID_SIGNATURE,
                "Invalid or expired request signature",
            )

        nonce = self.challenges.check_and_consume_nonce(envelope.public_key, request.nonce)
        if not nonce.valid:
            self.record_event(
                AuditEventType.REPLAY_ATTEMPT,
                RiskLevel.HIGH,
                ip=ip,
                agent_public_key=envelope.public_key,
                details={"action": f"{request.method} {request.path}"},
            )
            return SecurityCheck.failed(SecurityError.REPLAY_DETECTED, "Nonce already used (replay detected)")
        return SecurityCheck.passed()

    def screen_content(
        self,
        content: str,
        *,
        agent_id: str | None = None,
        ip: str | None = None,
    ) -> SecurityCheck:
        """Classify content; critical verdicts are blocked."""
        verdict = self.classifier.validate(content)
        if verdict.risk_level == RiskLevel.CRITICAL:
            self.record_event(
                AuditEventType.MESSAGE_BLOCKED,
                RiskLevel.CRITICAL,
                agent_id=agent_id,
                ip=ip,
                details={"warnings": list(verdict.warnings)},
            )
            return SecurityCheck.failed(
                SecurityError.CONTENT_BLOCKED,
                "Message blocked: Contains prompt injection patterns",
                warnings=list(verdict.warnings),
                verdict=verdict,
            )
        return SecurityCheck.passed(verdict=verdict, warnings=list(verdict.warnings))
