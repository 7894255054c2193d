"""Shared test fixtures for the plan review backend test suite.

Tests run against a throwaway SQLite file created per session. Each test
starts from freshly created tables. Integration jobs never reach a real
model: tests build a ``JobCoordinator`` around a fake completion function.
"""

import os
import tempfile

# Force auth off, point at a scratch database and keep jobs out of the
# API process before any app imports.
_DB_DIR = tempfile.mkdtemp(prefix="planreview-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["AUTH_ENABLED"] = "false"
os.environ["LOG_FORMAT"] = "text"
os.environ["WORKER_DISPATCH_IN_PROCESS"] = "false"

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_coordinator, get_dispatcher
from app.core.auth import AuthContext, require_auth
from app.core.config import Settings
from app.database import Base, SessionLocal, engine, init_db
from app.main import app
from app.services import CommentService, DocumentService, IntegrationClient, JobCoordinator

OWNER = "owner-1"
REVIEWER = "reviewer-1"

PLAN = "A\nB\nC\n"


@pytest.fixture(autouse=True)
def _fresh_schema():
    """Recreate every table before each test for isolation."""
    Base.metadata.drop_all(bind=engine)
    init_db(engine)
    yield


@pytest.fixture()
def db():
    """Per-test database session."""
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture()
def config() -> Settings:
    """Settings with no retry delay and a small accept quota."""
    return Settings(
        integration_model="test/model",
        integration_retry_delay_seconds=0.0,
        accept_rate_limit=10,
        accept_rate_window_seconds=3600,
    )


def completion_response(text: str, model: str = "test/model"):
    """Object shaped like a LiteLLM completion response."""
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=text))],
        model=model,
        usage=SimpleNamespace(prompt_tokens=120, completion_tokens=40),
    )


class FakeCompletion:
    """Scripted stand-in for ``litellm.completion``.

    Each call consumes the next outcome: a string is returned as the
    response text, an exception instance is raised.
    """

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def __call__(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return completion_response(outcome)


class RecordingNotifier:
    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    def notify(self, user_id, title, message, link):
        if self.fail:
            raise RuntimeError("inbox unavailable")
        self.sent.append((user_id, title, message, link))


def make_coordinator(config: Settings, completion, notifier=None) -> JobCoordinator:
    """Coordinator bound to the test database and a fake model."""
    client = IntegrationClient(config, completion_fn=completion, sleep=lambda _s: None)
    return JobCoordinator(
        session_factory=SessionLocal,
        client=client,
        notifier=notifier or RecordingNotifier(),
        config=config,
    )


def make_plan(db, content: str = PLAN, owner_id: str = OWNER, title: str = "Plan"):
    return DocumentService(db).create_document(owner_id, title, content)


def make_comment(db, document, start_line=2, end_line=2, body="Change B to B2",
                 author_id=REVIEWER, config=None):
    return CommentService(db, config).create_comment(
        document.id, author_id, start_line, end_line, body
    )


@pytest.fixture()
def completion():
    return FakeCompletion("A\nB2\nC\n")


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def coordinator(config, completion, notifier):
    return make_coordinator(config, completion, notifier)


@pytest.fixture()
def acting_as():
    """Switch the authenticated user for subsequent requests."""

    def _set(user_id: str):
        app.dependency_overrides[require_auth] = lambda: AuthContext(user_id=user_id)

    _set(OWNER)
    return _set


@pytest.fixture()
def client(coordinator, acting_as):
    """TestClient with the coordinator faked and in-process dispatch disabled.

    Tests drive queued jobs with ``coordinator.process(job_id)``.
    """
    app.dependency_overrides[get_coordinator] = lambda: coordinator
    app.dependency_overrides[get_dispatcher] = lambda: None
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
