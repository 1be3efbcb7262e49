"""
User Storage - persistent user records on top of StorageInterface.
One JSON document per user plus an email -> user_id index.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Dict, Optional

from .interface import StorageInterface
from .local_storage import LocalStorage

logger = logging.getLogger(__name__)


class UserStorage:
    """Manages persistent storage of user data under ``users/``."""

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.users_dir = "users"
        self._email_index_path = f"{self.users_dir}/email_index.json"

    def _user_path(self, user_id: str) -> str:
        return f"{self.users_dir}/{user_id}.json"

    async def _load_email_index(self) -> Dict[str, str]:
        content = await self.storage.load(self._email_index_path)
        if content is None:
            return {}
        try:
            return json.loads(content.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError):
            logger.error("Email index is corrupt, treating as empty")
            return {}

    async def _save_email_index(self, index: Dict[str, str]) -> bool:
        return await self.storage.save(self._email_index_path, json.dumps(index, indent=2))

    @staticmethod
    def _decode(content: bytes) -> Dict:
        user_data = json.loads(content.decode('utf-8'))
        for key in ('created_at', 'updated_at'):
            if key in user_data:
                user_data[key] = datetime.fromisoformat(user_data[key])
        return user_data

    async def get_user(self, user_id: str) -> Optional[Dict]:
        """
        Get user by user_id.

        Returns:
            Optional[Dict]: User data (including the password hash) or None
        """
        content = await self.storage.load(self._user_path(user_id))
        if content is None:
            return None
        try:
            return self._decode(content)
        except (UnicodeDecodeError, json.JSONDecodeError, ValueError) as e:
            logger.error(f"Error loading user {user_id}: {e}")
            return None

    async def get_user_by_email(self, email: str) -> Optional[Dict]:
        """Get user by (case-insensitive) email address."""
        index = await self._load_email_index()
        user_id = index.get(email.lower())
        if user_id is None:
            return None
        return await self.get_user(user_id)

    async def create_user(
        self,
        user_id: str,
        email: str,
        hashed_password: str,
        name: Optional[str] = None,
    ) -> Dict:
        """
        Create a new user and register its email in the index.

        Args:
            user_id: User ID (UUID)
            email: Email address, stored lower-cased
            hashed_password: bcrypt hash
            name: Display name

        Returns:
            Dict: Created user data
        """
        now = datetime.now(timezone.utc)
        email = email.lower()
        user_data = {
            "user_id": user_id,
            "email": email,
            "name": name,
            "hashed_password": hashed_password,
            "created_at": now.isoformat(),
            "updated_at": now.isoformat(),
            "is_active": True,
        }

        content = json.dumps(user_data, indent=2, ensure_ascii=False)
        if not await self.storage.save(self._user_path(user_id), content):
            raise OSError(f"Could not write user {user_id}")

        index = await self._load_email_index()
        index[email] = user_id
        await self._save_email_index(index)

        user_data['created_at'] = now
        user_data['updated_at'] = now
        return user_data


# Global user storage instance
_user_storage: Optional[UserStorage] = None


def init_user_storage(storage: Optional[StorageInterface] = None) -> UserStorage:
    """
    Initialize the process-wide user storage.

    Args:
        storage: Backing storage. Defaults to LocalStorage().
    """
    global _user_storage
    if storage is None:
        storage = LocalStorage()
    _user_storage = UserStorage(storage)
    return _user_storage


def get_user_storage() -> UserStorage:
    """
    Get the process-wide user storage.

    Raises:
        RuntimeError: If init_user_storage() has not been called
    """
    if _user_storage is None:
        raise RuntimeError("User storage not initialized. Call init_user_storage() first.")
    return _user_storage
