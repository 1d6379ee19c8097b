"""
Database plumbing for the settings store: one SQLAlchemy engine per process, short-lived
sessions through session_scope().
"""
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

Base = declarative_base()

DEFAULT_DB_PATH = Path.home() / ".awqat" / "awqat.db"
MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")

_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None


def resolve_database_url(config_data: Optional[Dict[str, Any]] = None, db_url: Optional[str] = None) -> str:
    """Explicit URL first, then database.path from the app config, then ~/.awqat/awqat.db."""
    if db_url:
        return db_url
    configured = ((config_data or {}).get("database") or {}).get("path")
    path = Path(configured).expanduser().resolve() if configured else DEFAULT_DB_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{path}"


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """One unit of work: commit when the block succeeds, roll back and re-raise otherwise."""
    if _SessionLocal is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    session = _SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(config_data: Optional[Dict[str, Any]] = None, db_url: Optional[str] = None) -> Engine:
    """Create the engine and the settings table. A second call returns the existing engine."""
    global _engine, _SessionLocal
    if _engine is not None:
        return _engine

    url = resolve_database_url(config_data, db_url)
    if url in MEMORY_URLS:
        # A single shared connection, or every session would open its own empty database
        engine = create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    else:
        engine = create_engine(url)

    from awqat.core import models  # noqa: F401  registers the tables on Base

    Base.metadata.create_all(engine)
    _engine = engine
    _SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    logger.info(f"Settings database ready at {url}")
    return engine


def dispose_db() -> None:
    """Release the engine so init_db can point somewhere else (tests, shutdown)."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None
