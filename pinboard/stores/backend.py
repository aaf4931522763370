from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError

from ..config import Settings, settings as app_settings
from ..db import init_db, make_engine, make_session_factory
from .pins import MemoryPinStore, PinStore, SqlPinStore
from .users import MemoryUserStore, SqlUserStore, UserStore

logger = logging.getLogger(__name__)


class StoreMode(str, enum.Enum):
    DURABLE = "durable"
    DEMO = "demo"


@dataclass(frozen=True)
class Backend:
    """Stores chosen for the lifetime of the process; never swapped afterwards."""

    mode: StoreMode
    pins: PinStore
    users: UserStore


def demo_backend() -> Backend:
    return Backend(mode=StoreMode.DEMO, pins=MemoryPinStore(), users=MemoryUserStore())


def sql_backend(session_factory) -> Backend:
    return Backend(
        mode=StoreMode.DURABLE,
        pins=SqlPinStore(session_factory),
        users=SqlUserStore(session_factory),
    )


def open_backend(settings: Settings | None = None) -> Backend:
    """
    Connect to the configured database once at startup.

    If it cannot be reached the process runs in demo mode: in-memory stores
    whose data resets on restart.
    """
    settings = settings or app_settings
    try:
        engine = make_engine(settings.DATABASE_URL, connect_timeout=settings.DATABASE_CONNECT_TIMEOUT_SECONDS)
        init_db(engine)
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("Database error: %s", exc)
        logger.warning("Using demo mode (data resets on restart)")
        return demo_backend()

    logger.info("Database connected: %s", engine.url.render_as_string(hide_password=True))
    return sql_backend(make_session_factory(engine))
