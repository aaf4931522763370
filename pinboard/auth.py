from __future__ import annotations

import logging
from typing import Optional

from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired
from passlib.context import CryptContext
from passlib.exc import MissingBackendError, UnknownHashError
from passlib.hash import argon2
from fastapi import Request

from .config import settings
from .errors import NotAuthorized
from .stores.users import UserRecord, UserStore

logger = logging.getLogger(__name__)


def _build_pwd_context() -> CryptContext:
    """
    Prefer Argon2, but gracefully fall back to pbkdf2_sha256 if the argon2 backend
    is missing in the current runtime environment.
    """
    try:
        argon2.get_backend()
        return CryptContext(schemes=["argon2", "pbkdf2_sha256"], default="argon2", deprecated="auto")
    except MissingBackendError:
        logger.warning("Argon2 backend unavailable; falling back to pbkdf2_sha256 for password hashing.")
        return CryptContext(schemes=["pbkdf2_sha256"], default="pbkdf2_sha256", deprecated="auto")


pwd_context = _build_pwd_context()

TOKEN_SALT = "pinboard-auth"

def _serializer(secret_key: str | None = None) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(secret_key or settings.APP_SECRET_KEY, salt=TOKEN_SALT)

def hash_password(password: str) -> str:
    return pwd_context.hash(password)

def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(password, password_hash)
    except (UnknownHashError, MissingBackendError):
        if password_hash.startswith("$argon2"):
            logger.error("Argon2 password hash detected but argon2 backend is unavailable in this runtime.")
        return False

def make_token(user_id: int, secret_key: str | None = None) -> str:
    return _serializer(secret_key).dumps({"id": user_id})

def read_token(token: str, max_age_seconds: int | None = None, secret_key: str | None = None) -> Optional[int]:
    max_age = max_age_seconds if max_age_seconds is not None else settings.AUTH_TOKEN_TTL_SECONDS
    try:
        data = _serializer(secret_key).loads(token, max_age=max_age)
    except (BadSignature, SignatureExpired):
        # SignatureExpired subclasses BadSignature; both mean "not logged in"
        return None
    user_id = data.get("id") if isinstance(data, dict) else None
    return user_id if isinstance(user_id, int) else None

def bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        return None
    return header.removeprefix("Bearer ").strip() or None

def get_current_user(request: Request, users: UserStore) -> Optional[UserRecord]:
    token = bearer_token(request)
    if not token:
        return None
    user_id = read_token(token)
    if user_id is None:
        return None
    return users.get(user_id)

def require_user(request: Request, users: UserStore) -> UserRecord:
    token = bearer_token(request)
    if not token:
        raise NotAuthorized("No token")
    user = get_current_user(request, users)
    if user is None:
        raise NotAuthorized("Invalid token")
    return user
