"""Shared fixtures for the store, service and API tests."""
from __future__ import annotations

from datetime import datetime, timedelta

from pinboard.db import init_db, make_engine, make_session_factory
from pinboard.stores.backend import sql_backend
from pinboard.stores.pins import MemoryPinStore, SqlPinStore

BASE_TIME = datetime(2026, 1, 1, 12, 0, 0)


class Clock:
    """Every call is one second later than the previous one."""

    def __init__(self, start: datetime = BASE_TIME) -> None:
        self.current = start

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


def memory_pin_store() -> MemoryPinStore:
    return MemoryPinStore()


def sql_session_factory():
    engine = make_engine("sqlite://")
    init_db(engine)
    return make_session_factory(engine)


def sql_pin_store() -> SqlPinStore:
    return SqlPinStore(sql_session_factory())


def sqlite_backend():
    return sql_backend(sql_session_factory())


def add_pin(store, title: str, description: str = "", *, created_at: datetime, owner_id: int = 1, image: str = "/uploads/x.jpg"):
    return store.insert(
        title=title,
        description=description,
        image=image,
        owner_id=owner_id,
        owner_username=None,
        created_at=created_at,
    )


def seed_numbered(store, count: int, clock: Clock | None = None):
    """Pins "Pin 1" .. "Pin <count>" with strictly increasing created_at."""
    clock = clock or Clock()
    return [add_pin(store, f"Pin {i}", created_at=clock()) for i in range(1, count + 1)]


def titles(pins) -> list[str]:
    return [p.title for p in pins]
