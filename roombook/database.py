import logging
import sqlite3
import threading
import time
import uuid
from contextlib import nullcontext
from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from roombook.config.loader import get_database_url, get_pool_settings, get_sqlite_settings

logger = logging.getLogger("database")

DATABASE_URL = get_database_url()
SQLITE_SETTINGS = get_sqlite_settings()

# SQLite permits one writer at a time. Commits, flushes and booking
# check-then-write sequences all take this lock.
SQLITE_WRITE_LOCK = threading.RLock()

_LOCKED_MESSAGES = ("database is locked", "database table is locked")


def _prepare_sqlite_file(url: str) -> None:
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return
    if parsed.database in (None, "", ":memory:"):
        return
    target = Path(parsed.database)
    if not target.is_absolute():
        target = Path.cwd() / target
    target.parent.mkdir(parents=True, exist_ok=True)


def _engine_options(url: str) -> dict:
    if make_url(url).get_backend_name() == "sqlite":
        busy_seconds = max(1, SQLITE_SETTINGS["busy_timeout_ms"] / 1000)
        return {"connect_args": {"check_same_thread": False, "timeout": busy_seconds}}
    options = dict(get_pool_settings())
    options["pool_use_lifo"] = True
    return options


_prepare_sqlite_file(DATABASE_URL)
engine = create_engine(DATABASE_URL, pool_pre_ping=True, **_engine_options(DATABASE_URL))


@event.listens_for(Engine, "connect")
def _apply_sqlite_pragmas(dbapi_connection, _connection_record) -> None:
    if not isinstance(dbapi_connection, sqlite3.Connection):
        return
    pragmas = (
        f"journal_mode={SQLITE_SETTINGS['journal_mode']}",
        f"synchronous={SQLITE_SETTINGS['synchronous']}",
        "foreign_keys=ON",
        f"busy_timeout={SQLITE_SETTINGS['busy_timeout_ms']}",
    )
    cursor = dbapi_connection.cursor()
    try:
        for pragma in pragmas:
            cursor.execute(f"PRAGMA {pragma}")
    finally:
        cursor.close()


def is_sqlite_session(db: Session) -> bool:
    return db.get_bind().dialect.name == "sqlite"


def write_lock_for(db: Session):
    """The process-wide SQLite write lock, or a no-op context on other backends."""
    return SQLITE_WRITE_LOCK if is_sqlite_session(db) else nullcontext()


class QueuedSession(Session):
    """Session that funnels SQLite writes through one lock and retries when the file is busy."""

    def flush(self, objects=None) -> None:
        with write_lock_for(self):
            return super().flush(objects)

    def commit(self) -> None:
        if not is_sqlite_session(self):
            return super().commit()
        attempts = max(1, SQLITE_SETTINGS["write_retries"])
        backoff_seconds = max(1, SQLITE_SETTINGS["retry_backoff_ms"]) / 1000
        with SQLITE_WRITE_LOCK:
            attempt = 1
            while True:
                try:
                    return super().commit()
                except OperationalError as exc:
                    if not any(text in str(exc).lower() for text in _LOCKED_MESSAGES):
                        raise
                    super().rollback()
                    if attempt >= attempts:
                        raise
                    logger.warning("SQLite busy on commit, retry %s of %s", attempt, attempts - 1)
                    time.sleep(backoff_seconds * attempt)
                    attempt += 1


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, class_=QueuedSession)

Base = declarative_base()


def get_db():
    """FastAPI dependency yielding one session per request."""
    session_id = uuid.uuid4()
    logger.debug("[DB_SESSION][%s] open", session_id)
    db = SessionLocal()
    try:
        yield db
    finally:
        logger.debug("[DB_SESSION][%s] close", session_id)
        db.close()
