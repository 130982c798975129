"""Database engine, session factory and unit-of-work helpers.

All transactional changes go through :func:`session` (scripts, background jobs)
or :func:`get_db` (FastAPI dependency). Both commit on success and roll back on
any exception, so a multi-step operation never leaves partial state behind.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Generator
from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.schema import MetaData

from couchplan.config import get_settings

logger = logging.getLogger(__name__)

# Deterministic constraint/index names
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


def build_engine(db_url: str, *, echo: bool = False) -> Engine:
    """Create an engine for ``db_url`` with per-dialect connection arguments."""

    connect_args: dict[str, object] = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False

    return create_engine(db_url, echo=echo, pool_pre_ping=True, connect_args=connect_args)


@lru_cache
def get_engine() -> Engine:
    settings = get_settings()
    logger.info("Creating database engine for %s", settings.database_url)
    return build_engine(settings.database_url)


@lru_cache
def get_sessionmaker() -> sessionmaker:
    return sessionmaker(bind=get_engine(), autoflush=False, expire_on_commit=False)


def init_db(engine: Engine | None = None) -> None:
    """Create all tables that do not exist yet."""

    # Register the mapped classes on Base.metadata before creating tables.
    from couchplan import models  # noqa: F401

    target = engine or get_engine()
    Base.metadata.create_all(target)
    logger.info("Database schema ready")


@contextlib.contextmanager
def session() -> Generator[Session, None, None]:
    """Unit-of-work context manager for CLI operations and batch jobs.

    Usage:
        with session() as db:
            generate_schedule(db, catalog, date.today(), 7)
    """
    db = get_sessionmaker()()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency with the same unit-of-work semantics as :func:`session`."""
    db = get_sessionmaker()()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
