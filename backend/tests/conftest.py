"""Pytest configuration and fixtures."""

from datetime import datetime, timedelta

import pytest

from lvlai import create_app, db
from lvlai.models import User
from lvlai.services.focus_service import FocusSessionService
from lvlai.services.session_analyzer import SessionAnalyzer

T0 = datetime(2026, 3, 2, 9, 0, 0)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeAnalyzer(SessionAnalyzer):
    """Analyzer returning canned content and recording every prompt."""

    def __init__(self, content: str = "", error: Exception | None = None):
        self.content = content
        self.error = error
        self.prompts = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    def generate(self, prompt: str, user_id: int | None = None) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.content


@pytest.fixture
def app():
    """Create and configure a test application instance."""
    app = create_app("testing")

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Create a test client."""
    return app.test_client()


@pytest.fixture
def clock(app):
    """Fake clock wired into the app's focus service."""
    fake = FakeClock()
    app.config["FOCUS_CLOCK"] = fake
    return fake


@pytest.fixture
def fake_analyzer(app):
    """Fake analyzer wired into the app's focus service."""
    analyzer = FakeAnalyzer()
    app.extensions["session_analyzer"] = analyzer
    return analyzer


@pytest.fixture
def service(clock, fake_analyzer):
    """Focus service with a fake clock and analyzer."""
    return FocusSessionService(clock=clock, analyzer=fake_analyzer)


@pytest.fixture
def test_user(app):
    """Create a test user in the database."""
    with app.app_context():
        user = User(
            telegram_id=12345,
            username="test_user",
            first_name="Test",
            last_name="User",
        )
        db.session.add(user)
        db.session.commit()

        # Refresh to get the ID
        db.session.refresh(user)
        return {"id": user.id, "telegram_id": user.telegram_id}


@pytest.fixture
def other_user(app):
    """A second user for ownership checks."""
    user = User(telegram_id=54321, username="other_user")
    db.session.add(user)
    db.session.commit()
    return {"id": user.id, "telegram_id": user.telegram_id}


@pytest.fixture
def auth_headers(client, test_user):
    """Get authorization headers with JWT token."""
    response = client.post(
        "/api/v1/auth/dev",
        json={
            "telegram_id": test_user["telegram_id"],
            "username": "test_user",
        },
    )
    assert response.status_code == 200
    token = response.json["data"]["token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_client(client, auth_headers):
    """Create an authenticated test client wrapper."""

    class AuthenticatedClient:
        def __init__(self, client, headers):
            self._client = client
            self._headers = headers

        def get(self, *args, **kwargs):
            kwargs.setdefault("headers", {}).update(self._headers)
            return self._client.get(*args, **kwargs)

        def post(self, *args, **kwargs):
            kwargs.setdefault("headers", {}).update(self._headers)
            return self._client.post(*args, **kwargs)

        def put(self, *args, **kwargs):
            kwargs.setdefault("headers", {}).update(self._headers)
            return self._client.put(*args, **kwargs)

        def delete(self, *args, **kwargs):
            kwargs.setdefault("headers", {}).update(self._headers)
            return self._client.delete(*args, **kwargs)

    return AuthenticatedClient(client, auth_headers)
