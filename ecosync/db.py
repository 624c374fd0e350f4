from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ecosync.models import Base

DEFAULT_DB_URL = "sqlite:///:memory:"


def create_db_engine(url: str | None = None) -> Engine:
    """Create an engine and make sure all tables exist.

    Defaults to ``ECOSYNC_DB_URL`` and then to an in-memory SQLite database.
    In-memory SQLite uses ``StaticPool`` so every session sees the same data.
    """
    url = url or os.environ.get("ECOSYNC_DB_URL") or DEFAULT_DB_URL
    kwargs: dict = {}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url or url == "sqlite://":
            kwargs["poolclass"] = StaticPool
    engine = create_engine(url, **kwargs)
    Base.metadata.create_all(engine)
    return engine


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@contextmanager
def session_scope(factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Context manager providing a transactional session scope.

    Commits on success, rolls back on error::

        with session_scope(factory) as session:
            ...
    """
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
