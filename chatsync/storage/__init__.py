"""Storage module - blob storage, user records and chat session stores."""

from .interface import StorageInterface
from .local_storage import LocalStorage
from .user_storage import UserStorage, init_user_storage, get_user_storage
from .session_store import SessionStore, MemorySessionStore, DurableSessionStore
from .session_router import (
    SessionRouter, init_session_router, get_session_router, shutdown_session_router,
)

__all__ = [
    'StorageInterface', 'LocalStorage',
    'UserStorage', 'init_user_storage', 'get_user_storage',
    'SessionStore', 'MemorySessionStore', 'DurableSessionStore',
    'SessionRouter', 'init_session_router', 'get_session_router', 'shutdown_session_router',
]
