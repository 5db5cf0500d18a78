"""Tests for challenge issuance."""

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from openclaw_recipes.core.security import decode_base64
from openclaw_recipes.services.auth import SecurityCheck
from openclaw_recipes.services.container import SecurityServices

from tests.conftest import START_MS, TEST_POW_DIFFICULTY


def test_challenge_response_shape(client: TestClient) -> None:
    response = client.get("/api/v1/auth/challenge")
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["success"] is True
    assert len(decode_base64(data["challenge"])) == 32
    assert data["expiresAt"] == START_MS + 300_000
    assert data["expiresIn"] == 300
    assert data["powDifficulty"] == TEST_POW_DIFFICULTY
    assert response.headers["X-RateLimit-Remaining"] == "19"


def test_challenges_are_unique(client: TestClient) -> None:
    first = client.get("/api/v1/auth/challenge").json()["challenge"]
    second = client.get("/api/v1/auth/challenge").json()["challenge"]
    assert first != second


def test_challenge_endpoint_is_rate_limited(client: TestClient, security: SecurityServices) -> None:
    for _ in range(security.config.rate_limit_challenge_limit):
        assert client.get("/api/v1/auth/challenge").status_code == status.HTTP_200_OK

    blocked = client.get("/api/v1/auth/challenge")
    assert blocked.status_code == status.HTTP_429_TOO_MANY_REQUESTS
    detail = blocked.json()["detail"]
    assert detail["code"] == "rate_limited"
    assert detail["resetAt"] == START_MS + 60_000
    assert blocked.headers["X-RateLimit-Reset"] == str(START_MS + 60_000)


def test_forwarded_ip_gets_own_bucket(client: TestClient, security: SecurityServices) -> None:
    for _ in range(security.config.rate_limit_challenge_limit):
        client.get("/api/v1/auth/challenge")
    response = client.get("/api/v1/auth/challenge", headers={"X-Forwarded-For": "203.0.113.7"})
    assert response.status_code == status.HTTP_200_OK


def test_missing_challenge_is_server_error(
    client: TestClient, security: SecurityServices, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(security.auth, "issue_challenge", lambda ip: SecurityCheck.passed())
    response = client.get("/api/v1/auth/challenge")
    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json()["detail"] == "Challenge could not be issued"
