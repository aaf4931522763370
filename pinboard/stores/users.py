from __future__ import annotations

import dataclasses
import itertools
import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from ..errors import NotFound, StoreUnavailable, UserExists
from ..models.user import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserRecord:
    id: int
    username: str
    email: str
    password_hash: str
    created_at: datetime


class UserStore(ABC):
    @abstractmethod
    def insert(self, *, username: str, email: str, password_hash: str, created_at: datetime) -> UserRecord: ...

    @abstractmethod
    def get(self, user_id: int) -> Optional[UserRecord]: ...

    @abstractmethod
    def find_by_email(self, email: str) -> Optional[UserRecord]: ...

    @abstractmethod
    def find_by_username(self, username: str) -> Optional[UserRecord]: ...

    @abstractmethod
    def set_password_hash(self, user_id: int, password_hash: str) -> None: ...


class MemoryUserStore(UserStore):
    """Demo-mode accounts; like demo pins they vanish on restart."""

    def __init__(self) -> None:
        self._users: dict[int, UserRecord] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def insert(self, *, username, email, password_hash, created_at) -> UserRecord:
        with self._lock:
            if any(u.email == email for u in self._users.values()):
                raise UserExists()
            user = UserRecord(
                id=next(self._ids),
                username=username,
                email=email,
                password_hash=password_hash,
                created_at=created_at,
            )
            self._users[user.id] = user
        return user

    def get(self, user_id: int) -> Optional[UserRecord]:
        return self._users.get(user_id)

    def find_by_email(self, email: str) -> Optional[UserRecord]:
        with self._lock:
            return next((u for u in self._users.values() if u.email == email), None)

    def find_by_username(self, username: str) -> Optional[UserRecord]:
        with self._lock:
            return next((u for u in self._users.values() if u.username == username), None)

    def set_password_hash(self, user_id: int, password_hash: str) -> None:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                raise NotFound("User not found")
            self._users[user_id] = dataclasses.replace(user, password_hash=password_hash)


class SqlUserStore(UserStore):
    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
        except (OperationalError, InterfaceError) as exc:
            logger.error("User store unavailable: %s", exc)
            raise StoreUnavailable() from exc
        finally:
            session.close()

    @staticmethod
    def _to_record(user: User | None) -> Optional[UserRecord]:
        if user is None:
            return None
        return UserRecord(
            id=user.id,
            username=user.username,
            email=user.email,
            password_hash=user.password_hash,
            created_at=user.created_at,
        )

    def insert(self, *, username, email, password_hash, created_at) -> UserRecord:
        with self._session() as session:
            user = User(username=username, email=email, password_hash=password_hash, created_at=created_at)
            session.add(user)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise UserExists() from exc
            return self._to_record(user)

    def get(self, user_id: int) -> Optional[UserRecord]:
        with self._session() as session:
            return self._to_record(session.get(User, user_id))

    def find_by_email(self, email: str) -> Optional[UserRecord]:
        with self._session() as session:
            return self._to_record(session.scalars(select(User).where(User.email == email)).first())

    def find_by_username(self, username: str) -> Optional[UserRecord]:
        with self._session() as session:
            return self._to_record(session.scalars(select(User).where(User.username == username)).first())

    def set_password_hash(self, user_id: int, password_hash: str) -> None:
        with self._session() as session:
            user = session.get(User, user_id)
            if user is None:
                raise NotFound("User not found")
            user.password_hash = password_hash
            session.commit()
