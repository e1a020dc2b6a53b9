"""
Shared fixtures: a throwaway SQLite file per test, the wired auth services,
and a Flask app/client built with the testing config.
"""
from datetime import datetime, timedelta, timezone

import pytest

from api import create_app
from api.config import TestingConfig
from models import storage
from services import build_auth


class FakeClock:
    """Settable clock; token expiry is judged against it as well."""

    def __init__(self, now=None):
        self.now = now or datetime.now(timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def test_config() -> dict:
    return {k: getattr(TestingConfig, k) for k in dir(TestingConfig) if k.isupper()}


@pytest.fixture
def db(tmp_path):
    storage.reload(f"sqlite:///{tmp_path / 'auth.db'}")
    yield storage
    storage.drop_all()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def auth(db, test_config):
    return build_auth(test_config, db)


@pytest.fixture
def clocked_auth(db, test_config, clock):
    """Same wiring as `auth`, but every component reads the fake clock."""
    return build_auth(test_config, db, clock=clock)


@pytest.fixture
def ann(auth):
    """A registered Student plus the token pair issued at registration."""
    return auth.credentials.register("Ann", "ann@x.com", "secret1", "1234567890")


@pytest.fixture
def app(tmp_path):
    app = create_app("testing", {"DATABASE_URL": f"sqlite:///{tmp_path / 'app.db'}"})
    yield app
    storage.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def refresh_cookie(resp, name="refresh_token"):
    """Raw refresh token from the response's Set-Cookie header, or None."""
    for header in resp.headers.getlist("Set-Cookie"):
        key, _, rest = header.partition("=")
        if key == name:
            return rest.split(";", 1)[0]
    return None


def bearer(token):
    return {"Authorization": f"Bearer {token}"}
