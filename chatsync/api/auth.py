"""
Authentication API endpoints.
"""

import logging

from fastapi import APIRouter, Depends, status
from datetime import timedelta

from ..config import settings
from ..core.errors import Conflict, NotFound, Unauthenticated
from ..models import LoginRequest, Token, User, UserCreate
from ..utils.auth import (
    authenticate_user,
    create_access_token,
    create_user_in_db,
    get_current_user_id,
    get_password_hash,
    get_user_by_email,
    get_user_from_db,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])


def _public(user: dict) -> User:
    return User(**{k: v for k, v in user.items() if k != 'hashed_password'})


@router.post("/register", response_model=User, status_code=status.HTTP_201_CREATED)
async def register(user_data: UserCreate):
    """
    Register a new user.

    The display name defaults to the local part of the email address.

    Raises:
        Conflict: If the email is already registered
    """
    if await get_user_by_email(user_data.email):
        raise Conflict("Email already registered")

    user = await create_user_in_db(
        email=user_data.email,
        hashed_password=get_password_hash(user_data.password),
        name=user_data.name or user_data.email.split("@")[0],
    )
    logger.info(f"Registered user {user['user_id']}")
    return _public(user)


@router.post("/login", response_model=Token)
async def login(credentials: LoginRequest):
    """
    Exchange email and password for a bearer token.

    Raises:
        Unauthenticated: If the credentials do not match
    """
    user = await authenticate_user(credentials.email, credentials.password)
    if not user:
        raise Unauthenticated("Incorrect email or password")

    access_token = create_access_token(
        data={"sub": user["user_id"], "email": user["email"]},
        expires_delta=timedelta(minutes=settings.access_token_expire_minutes),
    )
    return Token(access_token=access_token)


@router.get("/me", response_model=User)
async def get_current_user(user_id: str = Depends(get_current_user_id)):
    """Return the authenticated user's profile."""
    user = await get_user_from_db(user_id)
    if not user:
        raise NotFound("User not found")
    return _public(user)
