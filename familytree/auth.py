"""
Authentication and entitlement checks.

``get_current_user`` resolves the caller from a bearer token and rejects
with 401 before any handler logic runs. ``require_paid`` depends on it, so
authentication always happens first, then reloads the paid flag and
rejects unpaid callers with 402. Per-record ownership is checked by each
operation through owner-filtered store queries.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from familytree.config import Settings, get_settings
from familytree.db import DbClient
from familytree.dependencies import get_db_client
from familytree.errors import PaymentRequiredError, UnauthorizedError
from familytree.records import UserRecord

logger = logging.getLogger(__name__)

_hasher = PasswordHasher()
_bearer = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return _hasher.hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    try:
        return _hasher.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def issue_token(user: UserRecord, settings: Settings) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "iat": now,
        "exp": now + timedelta(days=settings.jwt_expires_days),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Settings) -> dict:
    try:
        return jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except jwt.PyJWTError as exc:
        logger.debug("Rejected bearer token: %s", exc)
        raise UnauthorizedError() from exc


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
) -> UserRecord:
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("No token, authorization denied")
    claims = decode_token(credentials.credentials, settings)
    user_id = claims.get("id")
    user = db.get_user(user_id) if user_id else None
    if not user:
        raise UnauthorizedError()
    return user


def require_paid(
    user: UserRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
) -> UserRecord:
    current = db.get_user(user.id)
    if not current:
        raise UnauthorizedError()
    if not current.is_paid:
        raise PaymentRequiredError()
    return current
