"""Shared fixtures: environment is configured before the ``crm`` package loads."""

import base64
import os
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

TEST_SECRET = base64.b64encode(b"crm-test-signing-key-0123456789abcdef").decode("ascii")

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = TEST_SECRET
os.environ["OTP_DEBUG"] = "true"
os.environ["OTP_SWEEP_ENABLED"] = "false"
os.environ["OTP_EMAIL_SENDER"] = ""

import pytest  # noqa: E402

from crm.database import Base, build_engine, build_session_factory, init_db  # noqa: E402
from crm.services.otp import OtpService  # noqa: E402


class FakeClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 10, 16, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class SequenceRandom:
    """Deterministic stand-in for the ``secrets`` module."""

    def __init__(self, *values: int) -> None:
        self._values = list(values)

    def randbelow(self, exclusive_upper_bound: int) -> int:
        return self._values.pop(0) % exclusive_upper_bound


@pytest.fixture
def engine():
    test_engine = build_engine("sqlite://")
    init_db(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    """Mocked notifier, never sends anything."""
    return MagicMock()


@pytest.fixture
def otp_service(notifier, session_factory, clock):
    return OtpService(notifier, session_factory=session_factory, clock=clock)


@pytest.fixture
def app_db():
    """Fresh tables on the application's own engine."""
    from crm.database import engine as app_engine

    Base.metadata.drop_all(bind=app_engine)
    init_db()
    yield app_engine
    Base.metadata.drop_all(bind=app_engine)


@pytest.fixture
def rng_factory():
    return SequenceRandom
