"""Shared fixtures: settings, in-memory store, controllable clock."""
from datetime import datetime, timedelta, timezone

import pytest

from tasktrack.config import Settings
from tasktrack.services import security
from tasktrack.services.auth_service import AuthService
from tasktrack.services.security import TokenService
from tasktrack.services.session_directory import SessionDirectory
from tasktrack.services.task_service import TaskService
from tasktrack.stores.memory import MemoryRecordStore

TEST_SECRET = "unit-test-secret-key-with-enough-length-0123456789"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    # Minimum cost keeps the suite fast; production uses 12
    monkeypatch.setattr(security, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def settings():
    return Settings(jwt_secret_key=TEST_SECRET, store_backend="memory")


@pytest.fixture
def store():
    return MemoryRecordStore()


@pytest.fixture
def clock():
    return FakeClock(datetime(2030, 1, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def tokens(settings):
    return TokenService(settings)


@pytest.fixture
def auth_service(store, tokens):
    return AuthService(store, tokens, SessionDirectory(store.refresh_tokens))


@pytest.fixture
def task_service(store):
    return TaskService(store.tasks, store.accounts)
