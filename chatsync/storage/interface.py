"""
Storage Interface - abstract byte/text store addressed by relative paths.
The durable session store and the user store are written against this
contract so the filesystem backend can be swapped out.
"""

from abc import ABC, abstractmethod
from typing import List, Optional


class StorageInterface(ABC):
    """Contract for all blob storage implementations."""

    @abstractmethod
    async def save(self, path: str, content: bytes | str) -> bool:
        """
        Save content to the specified path, replacing any previous content.

        Args:
            path: Relative path (e.g., "sessions/<owner>/<id>.json")
            content: Bytes or text to write

        Returns:
            bool: True if the write succeeded
        """

    @abstractmethod
    async def load(self, path: str) -> Optional[bytes]:
        """
        Load content from the specified path.

        Returns:
            Optional[bytes]: File content, or None if it does not exist
        """

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Check whether a file exists at the path."""

    @abstractmethod
    async def delete(self, path: str) -> bool:
        """
        Delete the file at the path.

        Returns:
            bool: True if a file was removed
        """

    @abstractmethod
    async def list(self, path: str, pattern: Optional[str] = None) -> List[str]:
        """
        List files directly under a directory.

        Args:
            path: Directory path
            pattern: Optional glob filter (e.g., "*.json")

        Returns:
            List[str]: Sorted relative file paths
        """
