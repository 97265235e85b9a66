"""Engine and session helpers for the snapshot database."""

from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

DEFAULT_DATABASE_URL = "postgresql://user:pass@db:5432/studmetrics"
POOL_SIZE = int(os.environ.get("DATABASE_POOL_SIZE", 5))


def database_url() -> str:
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


def create_engine_from_env(url: str | None = None) -> Engine:
    """Engine for ``url``, falling back to DATABASE_URL.

    A local SQLite file is opened without the same-thread check because the
    API reads it from FastAPI's worker threads.
    """
    url = url or database_url()
    if url.startswith("sqlite"):
        return create_engine(url, future=True, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True, pool_size=POOL_SIZE, future=True)


@contextmanager
def session_scope(engine: Engine) -> Iterator[Session]:
    """Commit on success, roll back and re-raise on error."""
    with Session(engine, future=True) as session:
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
