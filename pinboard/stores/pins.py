from __future__ import annotations

import dataclasses
import itertools
import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator

from sqlalchemy import String, func, or_, select
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from ..errors import NotFound, StoreUnavailable
from ..models.pin import Pin
from ..models.user import User

logger = logging.getLogger(__name__)

# fields an owner may change; id, owner_id and created_at are fixed at insertion
MUTABLE_FIELDS = ("title", "description", "image", "updated_at")


@dataclass(frozen=True)
class PinRecord:
    id: int
    title: str
    description: str
    image: str
    owner_id: int
    owner_username: str | None
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class PinFilter:
    """Which pins a query selects. Both stores must agree on these rules."""

    search: str = ""
    owner_id: int | None = None

    @property
    def needle(self) -> str:
        return self.search.strip().lower()

    def matches(self, pin: PinRecord) -> bool:
        if self.owner_id is not None and pin.owner_id != self.owner_id:
            return False
        needle = self.needle
        if not needle:
            return True
        if needle in pin.title.lower():
            return True
        return bool(pin.description) and needle in pin.description.lower()


def feed_sort_key(pin: PinRecord) -> tuple[datetime, int]:
    # sorted descending: newest first, higher id first on equal timestamps
    return (pin.created_at, pin.id)


class PinStore(ABC):
    """
    Storage contract for pins.

    ``find_matching`` returns pins in feed order (``created_at`` desc, ``id`` desc)
    starting at ``skip``, at most ``limit`` of them. Mutations raise ``NotFound``
    for unknown ids; an unreachable backend raises ``StoreUnavailable``.
    """

    @abstractmethod
    def find_matching(self, criteria: PinFilter, skip: int, limit: int) -> list[PinRecord]: ...

    @abstractmethod
    def count_matching(self, criteria: PinFilter) -> int: ...

    @abstractmethod
    def get(self, pin_id: int) -> PinRecord: ...

    @abstractmethod
    def insert(
        self,
        *,
        title: str,
        description: str,
        image: str,
        owner_id: int,
        owner_username: str | None,
        created_at: datetime,
    ) -> PinRecord: ...

    @abstractmethod
    def update_by_id(self, pin_id: int, changes: dict) -> PinRecord: ...

    @abstractmethod
    def delete_by_id(self, pin_id: int) -> None: ...


def _check_changes(changes: dict) -> None:
    unknown = set(changes) - set(MUTABLE_FIELDS)
    if unknown:
        raise ValueError(f"immutable or unknown pin fields: {sorted(unknown)}")


class MemoryPinStore(PinStore):
    """
    Demo-mode store used when the database is unreachable at startup.

    Pins live in a process-wide list and are gone after a restart; that is the
    intended behavior of demo mode. Records are immutable and swapped whole
    under the lock, so a reader sees a pin either before or after an edit.
    """

    def __init__(self) -> None:
        self._pins: list[PinRecord] = []
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def _snapshot(self, criteria: PinFilter) -> list[PinRecord]:
        with self._lock:
            return [p for p in self._pins if criteria.matches(p)]

    def find_matching(self, criteria: PinFilter, skip: int, limit: int) -> list[PinRecord]:
        matches = sorted(self._snapshot(criteria), key=feed_sort_key, reverse=True)
        return matches[skip:skip + limit]

    def count_matching(self, criteria: PinFilter) -> int:
        return len(self._snapshot(criteria))

    def get(self, pin_id: int) -> PinRecord:
        with self._lock:
            for pin in self._pins:
                if pin.id == pin_id:
                    return pin
        raise NotFound()

    def insert(self, *, title, description, image, owner_id, owner_username, created_at) -> PinRecord:
        with self._lock:
            pin = PinRecord(
                id=next(self._ids),
                title=title,
                description=description or "",
                image=image,
                owner_id=owner_id,
                owner_username=owner_username,
                created_at=created_at,
                updated_at=created_at,
            )
            self._pins.append(pin)
        return pin

    def update_by_id(self, pin_id: int, changes: dict) -> PinRecord:
        _check_changes(changes)
        with self._lock:
            for index, pin in enumerate(self._pins):
                if pin.id == pin_id:
                    updated = dataclasses.replace(pin, **changes)
                    self._pins[index] = updated
                    return updated
        raise NotFound()

    def delete_by_id(self, pin_id: int) -> None:
        with self._lock:
            remaining = [p for p in self._pins if p.id != pin_id]
            if len(remaining) == len(self._pins):
                raise NotFound()
            self._pins = remaining


class SqlPinStore(PinStore):
    """Durable store backed by the ``pins`` table."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
        except (OperationalError, InterfaceError) as exc:
            logger.error("Pin store unavailable: %s", exc)
            raise StoreUnavailable() from exc
        finally:
            session.close()

    @staticmethod
    def _where(stmt, criteria: PinFilter):
        needle = criteria.needle
        if needle:
            stmt = stmt.where(
                or_(
                    func.lower(Pin.title, type_=String).contains(needle, autoescape=True),
                    func.lower(Pin.description, type_=String).contains(needle, autoescape=True),
                )
            )
        if criteria.owner_id is not None:
            stmt = stmt.where(Pin.owner_id == criteria.owner_id)
        return stmt

    @staticmethod
    def _to_record(pin: Pin, username: str | None) -> PinRecord:
        return PinRecord(
            id=pin.id,
            title=pin.title,
            description=pin.description or "",
            image=pin.image,
            owner_id=pin.owner_id,
            owner_username=username,
            created_at=pin.created_at,
            updated_at=pin.updated_at,
        )

    def _load(self, session: Session, pin_id: int) -> PinRecord:
        row = session.execute(
            select(Pin, User.username).outerjoin(User, User.id == Pin.owner_id).where(Pin.id == pin_id)
        ).first()
        if row is None:
            raise NotFound()
        return self._to_record(*row)

    def find_matching(self, criteria: PinFilter, skip: int, limit: int) -> list[PinRecord]:
        stmt = select(Pin, User.username).outerjoin(User, User.id == Pin.owner_id)
        stmt = (
            self._where(stmt, criteria)
            .order_by(Pin.created_at.desc(), Pin.id.desc())
            .offset(skip)
            .limit(limit)
        )
        with self._session() as session:
            return [self._to_record(pin, username) for pin, username in session.execute(stmt).all()]

    def count_matching(self, criteria: PinFilter) -> int:
        stmt = self._where(select(func.count()).select_from(Pin), criteria)
        with self._session() as session:
            return session.execute(stmt).scalar_one()

    def get(self, pin_id: int) -> PinRecord:
        with self._session() as session:
            return self._load(session, pin_id)

    def insert(self, *, title, description, image, owner_id, owner_username, created_at) -> PinRecord:
        with self._session() as session:
            pin = Pin(
                title=title,
                description=description or "",
                image=image,
                owner_id=owner_id,
                created_at=created_at,
                updated_at=created_at,
            )
            session.add(pin)
            session.commit()
            return self._load(session, pin.id)

    def update_by_id(self, pin_id: int, changes: dict) -> PinRecord:
        _check_changes(changes)
        with self._session() as session:
            pin = session.get(Pin, pin_id)
            if pin is None:
                raise NotFound()
            for field, value in changes.items():
                setattr(pin, field, value)
            # one commit, so all submitted fields land together
            session.commit()
            return self._load(session, pin_id)

    def delete_by_id(self, pin_id: int) -> None:
        with self._session() as session:
            pin = session.get(Pin, pin_id)
            if pin is None:
                raise NotFound()
            session.delete(pin)
            session.commit()
