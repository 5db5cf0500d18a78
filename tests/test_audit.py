"""Tests for the in-memory audit log."""

import logging

import pytest

from openclaw_recipes.services.audit import AuditEventType, AuditFilter, AuditLog
from openclaw_recipes.services.message_security import RiskLevel

from tests.conftest import FakeClock


def test_query_returns_newest_first_with_limit() -> None:
    clock = FakeClock()
    log = AuditLog(clock=clock)
    for index in range(5):
        log.record(AuditEventType.AUTH_CHALLENGE, details={"n": index})
        clock.advance(1)

    events = log.query(limit=3)
    assert [event.details["n"] for event in events] == [4, 3, 2]
    assert log.query(limit=0) == []


def test_ring_buffer_drops_oldest() -> None:
    log = AuditLog(max_events=3, clock=FakeClock())
    for index in range(5):
        log.record(AuditEventType.AUTH_FAIL, details={"n": index})
    assert len(log) == 3
    assert [event.details["n"] for event in log.query()] == [4, 3, 2]


def test_filters_combine() -> None:
    clock = FakeClock()
    log = AuditLog(clock=clock)
    log.record(AuditEventType.AUTH_FAIL, RiskLevel.HIGH, agent_id="a")
    clock.advance(10)
    log.record(AuditEventType.AUTH_FAIL, RiskLevel.MEDIUM, agent_id="b")
    log.record(AuditEventType.POW_FAIL, RiskLevel.HIGH, agent_id="a")

    assert len(log.query(event_filter=AuditFilter(type=AuditEventType.AUTH_FAIL))) == 2
    assert len(log.query(event_filter=AuditFilter(risk_level=RiskLevel.HIGH))) == 2
    assert len(log.query(event_filter=AuditFilter(agent_id="a", type=AuditEventType.POW_FAIL))) == 1
    assert len(log.query(event_filter=AuditFilter(since=clock()))) == 2


def test_recorded_events_are_immutable() -> None:
    log = AuditLog(clock=FakeClock())
    details = {"reason": "x"}
    event = log.record(AuditEventType.AUTH_FAIL, details=details)
    details["reason"] = "changed"
    assert event.details["reason"] == "x"
    with pytest.raises(TypeError):
        event.details["reason"] = "y"  # type: ignore[index]


def test_stats_window_and_counts() -> None:
    clock = FakeClock()
    log = AuditLog(clock=clock)
    log.record(AuditEventType.AUTH_FAIL, RiskLevel.HIGH, agent_id="old", ip="1.1.1.1")
    clock.advance(2 * 60 * 60 * 1000)
    log.record(AuditEventType.AUTH_FAIL, RiskLevel.HIGH, agent_id="a", ip="2.2.2.2")
    log.record(AuditEventType.RATE_LIMIT_HIT, RiskLevel.MEDIUM, ip="2.2.2.2")

    stats = log.stats()
    assert stats["total"] == 2
    assert stats["by_type"] == {"auth_fail": 1, "rate_limit_hit": 1}
    assert stats["by_risk"] == {"high": 1, "medium": 1}
    assert stats["unique_agents"] == 1
    assert stats["unique_ips"] == 1
    assert log.stats(since=0)["total"] == 3


def test_high_risk_events_log_at_warning(caplog: pytest.LogCaptureFixture) -> None:
    log = AuditLog(clock=FakeClock())
    with caplog.at_level(logging.INFO, logger="openclaw_recipes.services.audit"):
        log.record(AuditEventType.REPLAY_ATTEMPT, RiskLevel.HIGH)
        log.record(AuditEventType.AUTH_CHALLENGE, RiskLevel.LOW)
    levels = [record.levelno for record in caplog.records]
    assert levels == [logging.WARNING, logging.INFO]


def test_to_dict_serialises_enums() -> None:
    event = AuditLog(clock=FakeClock()).record("pow_fail", "medium", ip="1.2.3.4")
    data = event.to_dict()
    assert data["type"] == "pow_fail"
    assert data["risk_level"] == "medium"
    assert data["ip"] == "1.2.3.4"


def test_record_and_query_accept_keyword_arguments() -> None:
    log = AuditLog(clock=FakeClock())
    log.record(event_type=AuditEventType.POW_FAIL, risk_level=RiskLevel.MEDIUM, ip="1.2.3.4")
    log.record(event_type=AuditEventType.AUTH_FAIL)
    matched = log.query(limit=10, event_filter=AuditFilter(type=AuditEventType.POW_FAIL))
    assert [event.ip for event in matched] == ["1.2.3.4"]
