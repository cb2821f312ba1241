from __future__ import annotations

import os
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-access-secret-0123456789abcdef")
os.environ.setdefault("JWT_REFRESH_SECRET", "test-refresh-secret-0123456789abcdef")

from tokenvault.core.config import load_settings  # noqa: E402
from tokenvault.core.tokens import TokenSigner  # noqa: E402
from tokenvault.db.session import create_all_tables  # noqa: E402
from tokenvault.models.session_record import utcnow  # noqa: E402
from tokenvault.services.auth_service import TokenService  # noqa: E402
from tokenvault.services.session_store import InMemorySessionStore  # noqa: E402

ACCESS_SECRET = "a" * 32
REFRESH_SECRET = "r" * 32


class Clock:
    """Real UTC time plus an adjustable offset."""

    def __init__(self) -> None:
        self.offset = timedelta(0)

    def advance(self, delta: timedelta) -> None:
        self.offset += delta

    def __call__(self) -> datetime:
        return utcnow() + self.offset


@pytest.fixture
def settings():
    return load_settings(
        ENV="test",
        DATABASE_URL="sqlite://",
        JWT_SECRET_KEY=ACCESS_SECRET,
        JWT_REFRESH_SECRET=REFRESH_SECRET,
    )


@pytest.fixture
def signer():
    return TokenSigner(access_secret=ACCESS_SECRET, refresh_secret=REFRESH_SECRET)


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def service(store, signer, clock):
    return TokenService(store, signer, clock=clock)


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_all_tables(eng)
    yield eng
    eng.dispose()
