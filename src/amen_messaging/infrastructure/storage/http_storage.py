"""Attachment uploads to an HTTP object store."""
from __future__ import annotations

import logging

import httpx

from amen_messaging.application.exceptions import UploadFailedError

logger = logging.getLogger(__name__)


class HttpAttachmentStorage:
    """Implements application.ports.storage.AttachmentStorage with PUT uploads."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        *,
        public_url: str | None = None,
        api_key: str = "",
    ) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._public_url = (public_url or base_url).rstrip("/")
        self._api_key = api_key

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        headers = {"Content-Type": content_type}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        try:
            response = await self._client.put(
                f"{self._base_url}/{path}", content=data, headers=headers,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Attachment upload to %s failed: %s", path, exc)
            raise UploadFailedError("Attachment upload failed") from exc
        return f"{self._public_url}/{path}"
