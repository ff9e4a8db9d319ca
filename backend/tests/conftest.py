import os

# Must be set before `app.config` is imported anywhere.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DB_INIT_MODE"] = "create_all"
os.environ["BCRYPT_COST"] = "4"
os.environ["ENVIRONMENT"] = "test"

from datetime import datetime, timedelta, timezone

import pytest

from app.config import settings
from app.schemas.user import UserCreate
from app.services.background import InlineRunner
from app.services.container import build_container
from app.stores.memory import MemoryBackend


class FakeClock:
    """Settable clock handed to the services instead of the wall clock."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 1, 5, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def backend():
    return MemoryBackend()


@pytest.fixture
def container(backend, clock):
    return build_container(
        settings,
        users=backend.users,
        roles=backend.roles,
        sessions=backend.sessions,
        background=InlineRunner(),
        clock=clock,
    )


@pytest.fixture
def make_user(container):
    def _make(username="alice", email="alice@example.com", password="correct-horse-1", **extra):
        return container.auth.register(
            UserCreate(username=username, email=email, password=password, **extra)
        )

    return _make


@pytest.fixture
def admin_user(container, make_user):
    """Registered user holding the seeded admin role"""
    admin_role = container.rbac.ensure_defaults()
    user = make_user(username="root", email="root@example.com", password="admin-pass-123")
    container.rbac.assign_role(user.id, admin_role.id)
    return user
