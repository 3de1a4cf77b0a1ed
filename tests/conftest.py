from __future__ import annotations

import pytest

from api import create_app
from models import Role
from tests._helpers import PASSWORD, FakeGoogleProvider, RecordingMailSender


@pytest.fixture
def mailer() -> RecordingMailSender:
    return RecordingMailSender()


@pytest.fixture
def provider() -> FakeGoogleProvider:
    return FakeGoogleProvider()


@pytest.fixture
def app(mailer, provider):
    app = create_app("testing", mail_sender=mailer, oauth_provider=provider)
    yield app
    app.extensions["auth"].storage.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_services(app):
    return app.extensions["auth"]


@pytest.fixture
def orchestrator(auth_services):
    return auth_services.orchestrator


@pytest.fixture
def make_account(auth_services):
    """Create an account directly through the repository."""

    def _make(email="u@x.com", password=PASSWORD, role=Role.FREE, **kwargs):
        password_hash = auth_services.orchestrator.hasher.hash(password) if password else ""
        return auth_services.accounts.create(
            email,
            password_hash=password_hash,
            role=role,
            max_slides_per_month=kwargs.pop("max_slides_per_month", 5),
            **kwargs,
        )

    return _make
