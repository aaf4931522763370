from __future__ import annotations

import logging
from datetime import datetime, timezone

from ..auth import hash_password, verify_password
from ..errors import InvalidCredentials, NotFound, ValidationFailed
from ..stores.users import UserRecord, UserStore

logger = logging.getLogger(__name__)


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def register(users: UserStore, username: str | None, email: str | None, password: str | None) -> UserRecord:
    username = (username or "").strip()
    email = normalize_email(email)
    if not username or not email or not password:
        raise ValidationFailed("Username, email and password are required")
    if "@" not in email:
        raise ValidationFailed("Invalid email")

    user = users.insert(
        username=username,
        email=email,
        password_hash=hash_password(password),
        created_at=datetime.now(timezone.utc).replace(tzinfo=None),
    )
    logger.info("Registered user %s (#%s)", user.username, user.id)
    return user


def authenticate(users: UserStore, email: str | None, password: str | None) -> UserRecord:
    user = users.find_by_email(normalize_email(email))
    if not user or not password or not verify_password(password, user.password_hash):
        raise InvalidCredentials()
    return user


def reset_password(users: UserStore, email: str, password: str) -> UserRecord:
    user = users.find_by_email(normalize_email(email))
    if not user:
        raise NotFound("User not found")
    users.set_password_hash(user.id, hash_password(password))
    return user
