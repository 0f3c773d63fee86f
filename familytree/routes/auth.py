"""
Registration, login and profile routes.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from familytree.auth import get_current_user, hash_password, issue_token, verify_password
from familytree.config import Settings, get_settings
from familytree.db import DbClient
from familytree.dependencies import get_db_client
from familytree.errors import DuplicateKeyError, ValidationError
from familytree.records import UserRecord, new_id
from familytree.schemas import AuthResponse, LoginRequest, RegisterRequest, UserResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])

EMAIL_TAKEN = "Email already registered"


def _user_response(user: UserRecord) -> UserResponse:
    return UserResponse(**user.as_public_dict())


@router.post("/register", response_model=AuthResponse, status_code=201)
def register(
    payload: RegisterRequest,
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    if not payload.name or not payload.email or not payload.password:
        raise ValidationError("All fields required")
    email = payload.email.strip().lower()
    if db.get_user_by_email(email):
        raise ValidationError(EMAIL_TAKEN)

    user = UserRecord(
        id=new_id(),
        name=payload.name.strip(),
        email=email,
        password_hash=hash_password(payload.password),
    )
    try:
        db.create_user(user)
    except DuplicateKeyError as exc:
        raise ValidationError(EMAIL_TAKEN) from exc
    logger.info("Registered user %s", user.id)
    return AuthResponse(token=issue_token(user, settings), user=_user_response(user))


@router.post("/login", response_model=AuthResponse)
def login(
    payload: LoginRequest,
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    email = (payload.email or "").strip().lower()
    user = db.get_user_by_email(email) if email else None
    if not user or not verify_password(user.password_hash, payload.password or ""):
        raise ValidationError("Invalid credentials")
    return AuthResponse(token=issue_token(user, settings), user=_user_response(user))


@router.get("/me", response_model=UserResponse)
def me(user: UserRecord = Depends(get_current_user)):
    return _user_response(user)
