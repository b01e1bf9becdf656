from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session

from app.config import settings

_engine_kwargs: dict = {"pool_pre_ping": True}
if "sqlite" in settings.DATABASE_URL:
    # sqlite3 busy timeout bounds lock waits for readers and writers alike
    _engine_kwargs["connect_args"] = {
        "check_same_thread": False,
        "timeout": settings.DB_STATEMENT_TIMEOUT_SECONDS,
    }
    _db_path = settings.DATABASE_URL.removeprefix("sqlite:///")
    if _db_path and _db_path != ":memory:":
        Path(_db_path).parent.mkdir(parents=True, exist_ok=True)
else:
    _engine_kwargs["pool_size"] = settings.DB_POOL_SIZE
    _engine_kwargs["max_overflow"] = settings.DB_MAX_OVERFLOW
    if settings.DATABASE_URL.startswith("postgresql"):
        _timeout_ms = int(settings.DB_STATEMENT_TIMEOUT_SECONDS * 1000)
        _engine_kwargs["connect_args"] = {"options": f"-c statement_timeout={_timeout_ms}"}
engine = create_engine(settings.DATABASE_URL, **_engine_kwargs)

if "sqlite" in settings.DATABASE_URL:
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Create all tables. Called on first run."""
    from app.models import Base  # noqa: F401  registers all models
    Base.metadata.create_all(bind=engine)
