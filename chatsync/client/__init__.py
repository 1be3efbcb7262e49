"""Client module - HTTP client and the session synchronizer."""

from .api_client import SessionApiClient
from .scheduler import PeriodicTask
from .synchronizer import SessionSynchronizer, SyncPolicy

__all__ = ['SessionApiClient', 'PeriodicTask', 'SessionSynchronizer', 'SyncPolicy']
