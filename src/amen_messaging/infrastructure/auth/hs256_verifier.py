from __future__ import annotations

import jwt

from amen_messaging.application.dto.principal import Principal
from amen_messaging.application.exceptions import NotAuthenticatedError
from amen_messaging.infrastructure.auth._claims import principal_from_claims


class HS256Verifier:
    """Verify JWTs signed with a shared HS256 secret."""

    def __init__(self, secret: str, algorithm: str = "HS256") -> None:
        self._secret = secret
        self._algorithm = algorithm

    async def verify(self, token: str) -> Principal:
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.PyJWTError as exc:
            raise NotAuthenticatedError(str(exc)) from exc
        return principal_from_claims(payload)
