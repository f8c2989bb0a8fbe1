"""SQLAlchemy helpers."""

from __future__ import annotations

import contextlib
from typing import Callable, Iterator

from sqlalchemy import Connection, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

# SQLite virtual machine steps between two polls of the interrupt callback.
PROGRESS_STEPS = 1000


class Base(DeclarativeBase):
    """Declarative base."""


@contextlib.contextmanager
def interruptible(connection: Connection, should_stop: Callable[[], bool]) -> Iterator[None]:
    """Abort the statement running on ``connection`` once ``should_stop()`` is true.

    On SQLite the callback is polled from a progress handler while the
    statement runs and the driver raises ``OperationalError: interrupted``.
    Other backends only get the check made before the statement starts.
    """
    if connection.dialect.name != "sqlite":
        yield
        return
    raw = connection.connection.dbapi_connection
    raw.set_progress_handler(lambda: 1 if should_stop() else 0, PROGRESS_STEPS)
    try:
        yield
    finally:
        raw.set_progress_handler(None, PROGRESS_STEPS)


class Database:
    """Engine plus a session factory; one session per request."""

    def __init__(self, url: str, echo: bool = False) -> None:
        self._engine: Engine = create_engine(url, echo=echo, future=True)
        self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)

    def create_all(self) -> None:
        from . import models  # noqa: F401

        Base.metadata.create_all(self._engine)

    def dispose(self) -> None:
        self._engine.dispose()

    @contextlib.contextmanager
    def session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
