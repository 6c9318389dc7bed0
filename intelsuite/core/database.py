"""
Persistence for validated SITREPs and the editable lookup tables.

Two tables: `reports` holds one row per analyst-validated report keyed by
its timestamp, and `app_settings` holds JSON blobs such as the engine
configuration.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Integer,
    String,
    Text,
    create_engine,
    event,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class ReportRecord(Base):
    """An analyst-validated report: raw input, SITREP line and analysis snapshot."""

    __tablename__ = "reports"

    id = Column(Integer, primary_key=True, autoincrement=True)
    timestamp = Column(DateTime, nullable=False, unique=True, index=True)
    raw_input = Column(Text, nullable=False, default="")
    output = Column(Text, nullable=False)
    analysis = Column(JSON, nullable=False)
    threat_level = Column(String(20), nullable=True)
    location = Column(String(200), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class AppSetting(Base):
    """Named JSON settings, e.g. the persisted lookup tables."""

    __tablename__ = "app_settings"

    key = Column(String(200), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


_engines: dict[str, Engine] = {}
_session_factories: dict[str, sessionmaker] = {}


def _resolve_url(url: Optional[str]) -> str:
    # Read lazily so tests can point the package at a temporary database
    if url is None:
        from intelsuite.core.config import DATABASE_URL
        return DATABASE_URL
    return url


def _enable_wal(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


def get_engine(url: Optional[str] = None) -> Engine:
    """One engine per database URL for the lifetime of the process."""
    url = _resolve_url(url)
    engine = _engines.get(url)
    if engine is None:
        is_sqlite = url.startswith("sqlite")
        connect_args = {"timeout": 30, "check_same_thread": False} if is_sqlite else {}
        engine = create_engine(url, echo=False, connect_args=connect_args)
        # WAL lets the API serve reads while the CLI writes
        if is_sqlite:
            event.listen(engine, "connect", _enable_wal)
        _engines[url] = engine
    return engine


def get_session(url: Optional[str] = None) -> Session:
    url = _resolve_url(url)
    if url not in _session_factories:
        _session_factories[url] = sessionmaker(bind=get_engine(url))
    return _session_factories[url]()


def init_db(url: Optional[str] = None) -> Engine:
    """Create the report and settings tables if they do not exist yet."""
    engine = get_engine(url)
    Base.metadata.create_all(engine)
    logger.debug(f"Schema ready on {engine.url}")
    return engine
