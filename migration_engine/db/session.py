import logging
from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from migration_engine.core.config import settings

logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None


def _report_connection_failure(database_url: str, exc: Exception) -> None:
    """Log high-signal diagnostics when the service cannot reach its database."""
    logger.warning("Could not connect to database: %s", exc)
    logger.warning("The service will start but database operations will fail until the connection succeeds.")

    try:
        url = make_url(database_url)
    except Exception as parse_error:  # pragma: no cover
        logger.warning("Unable to parse DATABASE_URL (%s); skipping detailed diagnostics.", parse_error)
        return

    logger.warning(
        "Database settings: dialect=%s driver=%s host=%s port=%s database=%s",
        url.get_backend_name(),
        url.get_driver_name() or "default",
        url.host or "localhost",
        url.port or "(default)",
        url.database,
    )


def build_engine(database_url: str) -> Engine:
    """Create an engine, relaxing SQLite's thread checks for the worker pool."""
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return create_engine(database_url, pool_pre_ping=True)

    kwargs = {"connect_args": {"check_same_thread": False}}
    if url.database in (None, "", ":memory:"):
        # One shared connection, otherwise every session sees an empty database.
        kwargs["poolclass"] = StaticPool
    return create_engine(database_url, **kwargs)


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        try:
            _engine = build_engine(settings.database_url)
            # Test connection eagerly so failures surface immediately.
            with _engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception as e:
            _report_connection_failure(settings.database_url, e)
            # Keep the engine anyway so callers can proceed (may still fail later).
            _engine = build_engine(settings.database_url)
    return _engine


def configure_engine(engine: Engine) -> None:
    """Swap the process engine (tests and embedding applications)."""
    global _engine, SessionLocal
    _engine = engine
    SessionLocal = None


# Don't create engine at import time
SessionLocal = None

Base = declarative_base()


def get_session_local():
    global SessionLocal
    if SessionLocal is None:
        engine = get_engine()
        SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    return SessionLocal


def get_db():
    SessionLocal = get_session_local()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
