"""Models module."""

from .user import User, UserCreate, LoginRequest, Token, TokenData
from .session import (
    Role, SessionKind, Message, MessageIn, ChatSession, SessionSummary,
    SessionCreate, SessionUpdate, AppendRequest, BatchAppendResult,
    PromoteResult, DeleteResult,
)

__all__ = [
    'User', 'UserCreate', 'LoginRequest', 'Token', 'TokenData',
    'Role', 'SessionKind', 'Message', 'MessageIn', 'ChatSession', 'SessionSummary',
    'SessionCreate', 'SessionUpdate', 'AppendRequest', 'BatchAppendResult',
    'PromoteResult', 'DeleteResult',
]
