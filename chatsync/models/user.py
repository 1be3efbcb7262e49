"""
User Model - Defines the user data structure.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field


class UserCreate(BaseModel):
    """Registration payload."""
    email: EmailStr
    password: str = Field(..., min_length=6)
    name: Optional[str] = Field(None, max_length=100)


class LoginRequest(BaseModel):
    """Credentials for the login endpoint."""
    email: EmailStr
    password: str


class User(BaseModel):
    """User as returned by the API (never carries the password hash)."""
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    email: EmailStr
    name: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    is_active: bool = True


class Token(BaseModel):
    """JWT token response model."""
    access_token: str
    token_type: str = "bearer"


class TokenData(BaseModel):
    """Token payload data."""
    user_id: Optional[str] = None
    email: Optional[str] = None
