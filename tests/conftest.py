# tests/conftest.py
from __future__ import annotations

import json
import os
from collections.abc import Generator, Iterator
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")

from openclaw_recipes.api.v1.dependencies import get_security_services
from openclaw_recipes.core.pow import solve_proof_of_work
from openclaw_recipes.core.settings import Settings, settings
from openclaw_recipes.db.session import Base
from openclaw_recipes.db.session import get_db as app_get_session
from openclaw_recipes.main import app as fastapi_app
from openclaw_recipes.services.container import SecurityServices, build_security_services
from openclaw_recipes.utils.agent_client import AgentKeyPair

TEST_DB_URL = "sqlite://"
TEST_POW_DIFFICULTY = 2
TEST_ADMIN_TOKEN = "test-admin-token"
START_MS = 1_700_000_000_000


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: int = START_MS) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = SessionLocal()
    session.begin_nested()

    @event.listens_for(session, "after_transaction_end")
    def restart_savepoint(sess: Session, trans) -> None:  # pragma: no cover - SQLAlchemy internals
        if trans.nested and not getattr(trans._parent, "nested", False):
            session.begin_nested()

    try:
        yield session
    finally:
        event.remove(session, "after_transaction_end", restart_savepoint)
        session.close()

        if transaction.is_active:
            transaction.rollback()
        connection.close()

        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def test_settings() -> Settings:
    """Runtime settings with a cheap proof-of-work and a known admin token."""
    return settings.model_copy(
        update={"pow_difficulty": TEST_POW_DIFFICULTY, "admin_token": TEST_ADMIN_TOKEN}
    )


@pytest.fixture()
def security(test_settings: Settings, clock: FakeClock) -> SecurityServices:
    """Fresh in-memory security services driven by the fake clock."""
    return build_security_services(test_settings, clock=clock)


@pytest.fixture(autouse=True)
def override_dependencies(
    app: FastAPI,
    db_session: Session,
    security: SecurityServices,
) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    app.dependency_overrides[get_security_services] = lambda: security
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)
        app.dependency_overrides.pop(get_security_services, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def agent_keys() -> AgentKeyPair:
    return AgentKeyPair.generate()


@pytest.fixture()
def other_keys() -> AgentKeyPair:
    return AgentKeyPair.generate()


@pytest.fixture()
def admin_headers() -> dict[str, str]:
    return {"X-Admin-Token": TEST_ADMIN_TOKEN}


def fetch_challenge(client: TestClient) -> str:
    response = client.get("/api/v1/auth/challenge")
    assert response.status_code == 200, response.text
    return response.json()["challenge"]


def build_register_payload(
    keys: AgentKeyPair,
    challenge: str,
    name: str = "test-agent",
    difficulty: int = TEST_POW_DIFFICULTY,
) -> dict[str, Any]:
    """Registration body with a solved proof-of-work and signed challenge."""
    proof = solve_proof_of_work(challenge, difficulty)
    return {
        "name": name,
        "bio": "Writes tests",
        "capabilities": ["testing"],
        "challenge": challenge,
        "signature": keys.signature_payload(challenge),
        "pow": {"nonce": proof.nonce, "hash": proof.hash},
    }


def register_agent(client: TestClient, keys: AgentKeyPair, name: str = "test-agent") -> dict[str, Any]:
    payload = build_register_payload(keys, fetch_challenge(client), name=name)
    response = client.post("/api/v1/agents/register", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["agent"]


def signed_post(
    client: TestClient,
    keys: AgentKeyPair,
    path: str,
    body: dict[str, Any],
    clock: FakeClock,
    *,
    nonce: str | None = None,
):
    """POST `body` with request-bound signature headers stamped by `clock`."""
    raw = json.dumps(body).encode()
    headers = {"Content-Type": "application/json"}
    headers.update(keys.sign_request_headers("POST", path, raw, timestamp=clock(), nonce=nonce))
    return client.post(path, content=raw, headers=headers)


def create_project(
    client: TestClient,
    keys: AgentKeyPair,
    clock: FakeClock,
    title: str = "Recipe Parser",
) -> dict[str, Any]:
    response = signed_post(
        client,
        keys,
        "/api/v1/projects",
        {"title": title, "description": "Parse recipes into steps", "tags": ["nlp"]},
        clock,
    )
    assert response.status_code == 201, response.text
    return response.json()["project"]


def build_message_payload(
    keys: AgentKeyPair,
    challenge: str,
    project_id: int,
    content: str,
    **extra: Any,
) -> dict[str, Any]:
    message = f"send_message:{project_id}:{challenge}"
    return {
        "project_id": project_id,
        "content": content,
        "challenge": challenge,
        "signature": keys.signature_payload(message),
        **extra,
    }
