"""Audit logging for security observability.

Security-relevant events are kept in a capped, append-only ring buffer for
abuse detection and forensics, and mirrored to the application log.
"""

from __future__ import annotations

import logging
from collections import Counter, deque
from dataclasses import dataclass, field
from enum import Enum
from threading import Lock
from types import MappingProxyType
from typing import Any, Mapping

from openclaw_recipes.core.clock import Clock, now_ms
from openclaw_recipes.services.message_security import RiskLevel

logger = logging.getLogger(__name__)

DEFAULT_MAX_EVENTS = 10_000
DEFAULT_STATS_WINDOW_MS = 60 * 60 * 1000


class AuditEventType(str, Enum):
    AGENT_REGISTER = "agent_register"
    AGENT_REGISTER_FAIL = "agent_register_fail"
    AUTH_CHALLENGE = "auth_challenge"
    AUTH_VERIFY = "auth_verify"
    AUTH_FAIL = "auth_fail"
    MESSAGE_SEND = "message_send"
    MESSAGE_BLOCKED = "message_blocked"
    PROJECT_CREATE = "project_create"
    PROJECT_JOIN = "project_join"
    RATE_LIMIT_HIT = "rate_limit_hit"
    POW_FAIL = "pow_fail"
    REPLAY_ATTEMPT = "replay_attempt"
    SUSPICIOUS_ACTIVITY = "suspicious_activity"


@dataclass(frozen=True)
class AuditEvent:
    """One immutable audit record."""

    timestamp: int
    type: AuditEventType
    risk_level: RiskLevel
    agent_id: str | None = None
    agent_public_key: str | None = None
    ip: str | None = None
    user_agent: str | None = None
    details: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "type": self.type.value,
            "risk_level": self.risk_level.value,
            "agent_id": self.agent_id,
            "agent_public_key": self.agent_public_key,
            "ip": self.ip,
            "user_agent": self.user_agent,
            "details": dict(self.details),
        }


@dataclass(frozen=True)
class AuditFilter:
    type: AuditEventType | None = None
    risk_level: RiskLevel | None = None
    agent_id: str | None = None
    since: int | None = None

    def matches(self, event: AuditEvent) -> bool:
        if self.type is not None and event.type != self.type:
            return False
        if self.risk_level is not None and event.risk_level != self.risk_level:
            return False
        if self.agent_id is not None and event.agent_id != self.agent_id:
            return False
        if self.since is not None and event.timestamp < self.since:
            return False
        return True


class AuditLog:
    """Capped ring buffer of audit events; the oldest entries are dropped first."""

    def __init__(self, max_events: int = DEFAULT_MAX_EVENTS, *, clock: Clock = now_ms) -> None:
        self._events: deque[AuditEvent] = deque(maxlen=max_events)
        self._clock = clock
        self._lock = Lock()

    def __len__(self) -> int:
        return len(self._events)

    def record(
        self,
        event_type: AuditEventType,
        risk_level: RiskLevel = RiskLevel.LOW,
        *,
        agent_id: str | None = None,
        agent_public_key: str | None = None,
        ip: str | None = None,
        user_agent: str | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> AuditEvent:
        """Append an event and mirror it to the log stream."""
        event = AuditEvent(
            timestamp=self._clock(),
            type=AuditEventType(event_type),
            risk_level=RiskLevel(risk_level),
            agent_id=agent_id,
            agent_public_key=agent_public_key,
            ip=ip,
            user_agent=user_agent,
            details=MappingProxyType(dict(details or {})),
        )
        with self._lock:
            self._events.append(event)

        level = logging.WARNING if event.risk_level >= RiskLevel.HIGH else logging.INFO
        logger.log(
            level,
            "[AUDIT] %s risk=%s agent=%s ip=%s details=%s",
            event.type.value,
            event.risk_level.value,
            event.agent_id,
            event.ip,
            dict(event.details),
        )
        return event

    def query(self, limit: int = 100, event_filter: AuditFilter | None = None) -> list[AuditEvent]:
        """Return up to `limit` matching events, newest first."""
        if limit <= 0:
            return []
        with self._lock:
            snapshot = list(self._events)
        matched = [
            event
            for event in reversed(snapshot)
            if event_filter is None or event_filter.matches(event)
        ]
        return matched[:limit]

    def stats(self, since: int | None = None) -> dict[str, Any]:
        """Summarise events recorded at or after `since` (default: the last hour)."""
        cutoff = self._clock() - DEFAULT_STATS_WINDOW_MS if since is None else since
        with self._lock:
            recent = [event for event in self._events if event.timestamp >= cutoff]
        return {
            "total": len(recent),
            "by_type": dict(Counter(event.type.value for event in recent)),
            "by_risk": dict(Counter(event.risk_level.value for event in recent)),
            "unique_agents": len({event.agent_id for event in recent if event.agent_id}),
            "unique_ips": len({event.ip for event in recent if event.ip}),
        }
