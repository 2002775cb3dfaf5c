from abc import ABC, abstractmethod
from typing import Optional


class AbstractAttachmentStorage(ABC):
    """Binary store for uploaded files, organised in named storage areas (buckets)."""

    @abstractmethod
    async def upload(self, area: str, path: str, content: bytes, content_type: Optional[str] = None) -> None:
        """
        Stores `content` at `path` inside `area`, overwriting any object already there.

        Raises:
            AttachmentStorageError: if the store rejects the write.
        """
        pass

    @abstractmethod
    async def delete(self, area: str, path: str) -> bool:
        """
        Removes the object at `path` inside `area`.

        Returns:
            True if an object was removed, False if nothing was stored there.

        Raises:
            AttachmentStorageError: for any failure other than a missing object.
        """
        pass

    @abstractmethod
    def public_url(self, area: str, path: str) -> str:
        """Publicly reachable URL of the object at `path` inside `area`."""
        pass
