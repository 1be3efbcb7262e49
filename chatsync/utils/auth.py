"""
Authentication utilities - JWT token handling and password hashing.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from ..config import settings
from ..core.errors import Unauthenticated
from ..models import TokenData
from ..storage.user_storage import get_user_storage

logger = logging.getLogger(__name__)

# auto_error=False so a missing header is reported as 401 by us, not 403 by FastAPI
security = HTTPBearer(auto_error=False)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a bcrypt hash."""
    return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password.encode('utf-8'))


def get_password_hash(password: str) -> str:
    """Hash a password with a fresh salt."""
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: Claims to encode; ``sub`` must carry the user id
        expires_delta: Lifetime, defaults to the configured expiry

    Returns:
        str: Encoded JWT
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> Optional[TokenData]:
    """Decode and verify a JWT; None if invalid or expired."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None

    user_id = payload.get("sub")
    if user_id is None:
        return None
    return TokenData(user_id=user_id, email=payload.get("email"))


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """
    Dependency resolving the requesting identity from the bearer token.

    Raises:
        Unauthenticated: No token, or the token does not validate
    """
    if credentials is None:
        raise Unauthenticated("Missing bearer token")

    token_data = decode_access_token(credentials.credentials)
    if token_data is None or token_data.user_id is None:
        raise Unauthenticated("Could not validate credentials")
    return token_data.user_id


async def get_user_from_db(user_id: str) -> Optional[dict]:
    return await get_user_storage().get_user(user_id)


async def get_user_by_email(email: str) -> Optional[dict]:
    return await get_user_storage().get_user_by_email(email)


async def create_user_in_db(email: str, hashed_password: str, name: Optional[str] = None) -> dict:
    """Create a user with a fresh UUID."""
    user_id = str(uuid.uuid4())
    return await get_user_storage().create_user(user_id, email, hashed_password, name)


async def authenticate_user(email: str, password: str) -> Optional[dict]:
    """
    Authenticate a user by email and password.

    Returns:
        Optional[dict]: User data if the credentials match, None otherwise
    """
    user = await get_user_by_email(email)
    if not user:
        return None
    if not verify_password(password, user["hashed_password"]):
        return None
    return user
