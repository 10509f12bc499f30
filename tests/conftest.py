"""Shared fixtures: in-memory database, fake clock and a recording gateway."""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from harvester_auth.config import Settings
from harvester_auth.errors import DeliveryFailed
from harvester_auth.models import Base
from harvester_auth.otp import OtpService
from harvester_auth.store import SqlChallengeStore


class FakeClock:
    def __init__(self, now=None):
        self.now = now or datetime(2026, 1, 15, 10, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now = self.now + timedelta(seconds=seconds)


class RecordingGateway:
    name = "sms"

    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, subject, code, timeout):
        if self.fail:
            raise DeliveryFailed()
        self.sent.append((subject, code, timeout))

    @property
    def last_code(self):
        return self.sent[-1][1]


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        OTP_HASH_SECRET="test-secret",
        OTP_TTL_SECONDS=60,
        OTP_MAX_ATTEMPTS=5,
        DELIVERY_CHANNEL="sms",
        FAST2SMS_API_KEY="test-key",
    )


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store(db):
    return SqlChallengeStore(db)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def gateway():
    return RecordingGateway()


@pytest.fixture
def service(store, gateway, settings, clock):
    return OtpService(store, gateway, settings, clock=clock)
