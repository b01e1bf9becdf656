"""Shared test fixtures: in-memory SQLite, a test runtime and the API client."""
import os

# Keep app.database from creating data/portwatch.db during collection
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
# One shared TestClient address would exhaust the per-client limit
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from datetime import datetime, timedelta, timezone  # noqa: E402
from unittest.mock import MagicMock  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.config import Settings  # noqa: E402
from app.database import get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models import Base  # noqa: E402
from app.models.port import Port  # noqa: E402
from app.models.vessel import Vessel  # noqa: E402
from app.models.vessel_position import VesselPosition  # noqa: E402
from app.modules.runtime import build_runtime  # noqa: E402

SINGAPORE = (1.2644, 103.8217)


@pytest.fixture
def mock_db():
    """MagicMock database session; returns None for all queries by default."""
    session = MagicMock()
    session.query.return_value.filter.return_value.first.return_value = None
    session.query.return_value.filter.return_value.all.return_value = []
    return session


@pytest.fixture
def engine():
    """In-memory SQLite shared across threads (sweeper workers, notifier)."""
    eng = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(eng, "connect")
    def _set_sqlite_pragmas(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        DATABASE_URL="sqlite:///:memory:",
        ALERT_RULES_CONFIG=str(tmp_path / "alert_rules.yaml"),
        NOTIFY_CONFIG=str(tmp_path / "notify.yaml"),
        CONGESTION_ALERT_LOG=str(tmp_path / "congestion-alerts.jsonl"),
        PORTWATCH_API_KEY=None,
    )


@pytest.fixture
def runtime(test_settings):
    rt = build_runtime(test_settings)
    yield rt
    rt.close()


@pytest.fixture
def add_port(db):
    """Factory: insert a port and return it."""
    def _add(code="SGSIN", name="Singapore", country="Singapore", lat=SINGAPORE[0], lon=SINGAPORE[1]):
        port = Port(unlocode=code, name=name, country=country, lat=lat, lon=lon)
        db.add(port)
        db.commit()
        return port
    return _add


@pytest.fixture
def add_position(db):
    """Factory: insert a vessel (by IMO, created on first use) and one position report."""
    def _add(imo, lat, lon, sog=None, heading=None, nav_status=None, age_minutes=10, name=None):
        vessel = db.query(Vessel).filter(Vessel.imo == imo).first()
        if vessel is None:
            vessel = Vessel(imo=imo, mmsi=None, name=name or f"VESSEL {imo}")
            db.add(vessel)
            db.flush()
        db.add(VesselPosition(
            vessel_id=vessel.vessel_id,
            timestamp_utc=datetime.now(timezone.utc) - timedelta(minutes=age_minutes),
            lat=lat,
            lon=lon,
            sog=sog,
            heading=heading,
            nav_status=nav_status,
            source="test",
        ))
        db.commit()
        return vessel
    return _add


@pytest.fixture
def api_client(db, runtime):
    """TestClient bound to the in-memory database and the test runtime."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.state.runtime = runtime
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
    app.state.runtime = None
