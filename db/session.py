"""
db/session.py

SQLAlchemy engine and session factory.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

import db.models  # noqa: F401  registers the tables on Base.metadata
from db.base import Base
from db.config import normalize_postgres_url, resolve_database_url


def _get_bool_env(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def create_db_engine(database_url: str | None = None) -> Engine:
    """
    Build an engine for PostgreSQL, or SQLite for local runs and tests.
    """

    database_url = normalize_postgres_url(database_url) if database_url else resolve_database_url()
    echo = _get_bool_env("SQL_ECHO", default=False)
    if database_url.startswith("sqlite"):
        return create_engine(database_url, echo=echo)
    if not database_url.startswith("postgresql"):
        raise RuntimeError("Only PostgreSQL and SQLite URLs are supported.")

    return create_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,
        pool_recycle=_get_int_env("DB_POOL_RECYCLE", 1800),
        pool_size=_get_int_env("DB_POOL_SIZE", 5),
        max_overflow=_get_int_env("DB_MAX_OVERFLOW", 10),
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        class_=Session,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


def init_db(engine: Engine) -> None:
    """Create any missing residual store tables on ``engine``."""
    Base.metadata.create_all(engine)


@contextmanager
def session_scope(factory: sessionmaker) -> Iterator[Session]:
    """
    Yield a session that commits on success and rolls back on any error.
    """

    session = factory()
    try:
        yield session
        session.commit()
    except BaseException:
        session.rollback()
        raise
    finally:
        session.close()
