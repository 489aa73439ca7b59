from __future__ import annotations

from typing import Protocol

from amen_messaging.application.dto.principal import Principal


class TokenVerifier(Protocol):
    async def verify(self, token: str) -> Principal:
        """Return the caller or raise NotAuthenticatedError."""
        ...
