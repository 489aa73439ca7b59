from __future__ import annotations

from typing import Protocol


class AttachmentStorage(Protocol):
    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        """Store the blob and return its public URL. Raise UploadFailedError on failure."""
        ...
