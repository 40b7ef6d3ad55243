"""
Shared fixtures: an in-memory SQLite database with the full schema,
two registered reporters and a deterministic clock.
"""
import os

# Must be set before cheburcheck.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("WHITELIST_REFRESH_SECONDS", "0")

from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from cheburcheck.database import Base, enable_sqlite_foreign_keys
from cheburcheck.models import db_models  # noqa: F401
from cheburcheck.models.db_models import ReporterDB
from cheburcheck.models.evidence import EvidenceItem, ProbeConfig, ReportEnvelope
from cheburcheck.services.intake import ReportIntakeService

PRIMARY_TOKEN = "primary-probe-token-0001"
VOLUNTEER_TOKEN = "volunteer-probe-token-0002"


class StepClock:
    """Returns a strictly increasing timestamp on every call."""

    def __init__(self, start=datetime(2025, 3, 1, 12, 0, 0), step=timedelta(minutes=10)):
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current += self.step
        return value


def make_envelope(**overrides) -> ReportEnvelope:
    config = ProbeConfig(
        http=False,
        tx_junk=True,
        ip="5.78.7.195",
        path="/",
        retry_count=2,
        timeout_secs=5,
        probe_count=1000,
    )
    values = {"reporter_ip": "198.51.100.10", "version": "0.4.2", "config": config}
    values.update(overrides)
    return ReportEnvelope(**values)


def make_items(pairs):
    if isinstance(pairs, dict):
        pairs = pairs.items()
    return [EvidenceItem(domain=domain, outcome=outcome) for domain, outcome in pairs]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def reporters(db):
    """Reporter 1 is the trusted primary probe, reporter 2 a volunteer."""
    db.add_all([
        ReporterDB(id=1, name="primary", token=PRIMARY_TOKEN),
        ReporterDB(id=2, name="volunteer", token=VOLUNTEER_TOKEN),
    ])
    db.commit()
    return {"primary": 1, "volunteer": 2}


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def submit(db, reporters, clock):
    """Store a report through intake; report times advance with `clock`."""
    def _submit(pairs, token=PRIMARY_TOKEN, **envelope_overrides):
        intake = ReportIntakeService(db, clock=clock)
        return intake.submit(token, make_envelope(**envelope_overrides), make_items(pairs))
    return _submit
