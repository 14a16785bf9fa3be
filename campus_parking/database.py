# campus_parking/database.py
"""
Database connection, session management, and table creation.
Uses SQLAlchemy with PostgreSQL (SQLite is accepted for local runs and tests).
All models are auto-imported here so create_tables() creates every table in one call.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from campus_parking.config import settings
from campus_parking.errors import Conflict, ParkingError
from campus_parking.utils.logger import get_logger

logger = get_logger(__name__)

# SQLSTATEs for serialization_failure and deadlock_detected
_RETRYABLE_PGCODES = ("40001", "40P01")
_RETRYABLE_MESSAGES = ("could not serialize", "deadlock detected", "database is locked")


def is_memory_sqlite(url) -> bool:
    url = make_url(url)
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


def _engine_options(url: str) -> dict:
    if is_memory_sqlite(url):
        # Single shared connection so an in-memory DB survives across sessions
        return {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,   # Auto-reconnect if DB connection drops
        "pool_size": 10,
        "max_overflow": 20,
    }


def configure_sqlite(bind):
    """
    Per-connection SQLite setup: foreign keys on.
    File databases hand transaction control to SQLAlchemy and take the write
    lock at BEGIN (BEGIN IMMEDIATE). A reserve's availability count and its
    insert then share one transaction and concurrent reserves run one at a time.
    The in-memory engine shares a single connection and keeps pysqlite's defaults.
    """
    if bind.dialect.name != "sqlite":
        return
    serialize_writers = not is_memory_sqlite(bind.url)

    @event.listens_for(bind, "connect")
    def _on_connect(dbapi_connection, _record):
        if serialize_writers:
            dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    if serialize_writers:
        @event.listens_for(bind, "begin")
        def _on_begin(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")


engine = create_engine(
    settings.DATABASE_URL,
    echo=False,                  # Set True to log all SQL queries (debug only)
    **_engine_options(settings.DATABASE_URL),
)
configure_sqlite(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency: yields a DB session and closes it after the request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory():
    """FastAPI dependency for operations that open their own transactions per attempt."""
    return SessionLocal


def is_retryable_error(exc: DBAPIError) -> bool:
    """Serialization failures, deadlocks and booking-token collisions are worth another attempt."""
    orig = getattr(exc, "orig", None)
    if getattr(orig, "pgcode", None) in _RETRYABLE_PGCODES:
        return True
    text = str(orig if orig is not None else exc).lower()
    if isinstance(exc, IntegrityError):
        return "qr_code" in text
    return any(msg in text for msg in _RETRYABLE_MESSAGES)


def run_serializable(session_factory, work, label: str = "transaction"):
    """
    Run work(db) in a fresh session per attempt, with the connection opened at
    BOOKING_ISOLATION_LEVEL. SQLite gets its locking from configure_sqlite.
    work() must commit. ParkingError and non-retryable database errors
    propagate after rollback; retryable ones are retried up to
    BOOKING_MAX_RETRIES times, then raise Conflict.
    Objects returned by work() stay usable after the session closes.
    """
    max_attempts = settings.BOOKING_MAX_RETRIES
    for attempt in range(1, max_attempts + 1):
        db = session_factory()
        db.expire_on_commit = False
        try:
            if db.get_bind().dialect.name != "sqlite":
                db.connection(execution_options={"isolation_level": settings.BOOKING_ISOLATION_LEVEL})
            return work(db)
        except ParkingError:
            db.rollback()
            raise
        except DBAPIError as e:
            db.rollback()
            if not is_retryable_error(e):
                raise
            logger.warning(f"[DB] {label} attempt {attempt}/{max_attempts} aborted: {e.orig}")
        finally:
            db.close()

    logger.error(f"[DB] {label} gave up after {max_attempts} attempts")
    raise Conflict()


def create_tables(bind=None):
    """
    Creates all DB tables on startup. Safe to call multiple times.
    Import all models here so SQLAlchemy knows about them.
    """
    from campus_parking.models.zone import Zone                      # noqa
    from campus_parking.models.booking import Booking, BookingViolation  # noqa
    from campus_parking.models.event import Event                    # noqa
    from campus_parking.models.notification import Notification      # noqa
    from campus_parking.models.push_token import PushToken           # noqa

    Base.metadata.create_all(bind=bind or engine)
