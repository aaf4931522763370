from __future__ import annotations

import os

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import settings

class Base(DeclarativeBase):
    pass


def _py_lower(value):
    return value.lower() if isinstance(value, str) else value


def _install_sqlite_functions(dbapi_connection, connection_record) -> None:
    # SQLite's builtin lower() only folds ASCII; searches must fold like str.lower()
    dbapi_connection.create_function("lower", 1, _py_lower)


def make_engine(url: str | None = None, *, connect_timeout: int | None = None) -> Engine:
    url = url or settings.DATABASE_URL
    timeout = connect_timeout if connect_timeout is not None else settings.DATABASE_CONNECT_TIMEOUT_SECONDS

    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False, "timeout": timeout}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # one shared connection, otherwise every session gets an empty database
            kwargs["poolclass"] = StaticPool
        else:
            path = url.split("///", 1)[-1]
            directory = os.path.dirname(path)
            if directory:
                os.makedirs(directory, exist_ok=True)
        engine = create_engine(url, **kwargs)
        event.listen(engine, "connect", _install_sqlite_functions)
        return engine

    return create_engine(url, pool_pre_ping=True, pool_timeout=timeout)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create missing tables and make sure the database answers."""
    # models must be imported so their tables are registered on Base.metadata
    from .models import pin, user  # noqa: F401

    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    Base.metadata.create_all(engine)
