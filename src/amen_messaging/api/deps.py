"""FastAPI dependency injection helpers."""
from __future__ import annotations

from typing import Annotated, AsyncIterator

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from amen_messaging.application.dto.principal import Principal
from amen_messaging.application.exceptions import NotAuthenticatedError
from amen_messaging.application.ports.auth import TokenVerifier
from amen_messaging.application.ports.bus import EventPublisher
from amen_messaging.application.ports.clock import Clock, SystemClock
from amen_messaging.application.ports.notifications import NotificationDispatcher
from amen_messaging.application.ports.storage import AttachmentStorage
from amen_messaging.application.ports.typing_store import TypingStore
from amen_messaging.application.sync.synchronizer import LiveViewSynchronizer
from amen_messaging.application.uow import UnitOfWork
from amen_messaging.config import settings
from amen_messaging.infrastructure.auth.hs256_verifier import HS256Verifier
from amen_messaging.infrastructure.auth.jwks_verifier import JWKSVerifier
from amen_messaging.infrastructure.db.session import AsyncSessionLocal
from amen_messaging.infrastructure.db.uow import SqlAlchemyUoW

_bearer_scheme = HTTPBearer(auto_error=False)


async def get_uow() -> AsyncIterator[UnitOfWork]:
    async with AsyncSessionLocal() as session:
        async with SqlAlchemyUoW(session) as uow:
            yield uow


UoWDep = Annotated[UnitOfWork, Depends(get_uow)]


def _get_verifier() -> TokenVerifier:
    if settings.JWT_VERIFY_MODE == "jwks":
        assert settings.JWKS_URL, "JWKS_URL must be set when JWT_VERIFY_MODE=jwks"
        return JWKSVerifier(settings.JWKS_URL, settings.JWT_AUDIENCE)
    return HS256Verifier(settings.JWT_SECRET, settings.JWT_ALGORITHM)


_verifier: TokenVerifier | None = None


def get_verifier() -> TokenVerifier:
    global _verifier  # noqa: PLW0603
    if _verifier is None:
        _verifier = _get_verifier()
    return _verifier


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)],
    verifier: Annotated[TokenVerifier, Depends(get_verifier)],
) -> Principal:
    if credentials is None:
        raise NotAuthenticatedError("Missing bearer token")
    return await verifier.verify(credentials.credentials)


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


def get_publisher(request: Request) -> EventPublisher:
    return request.app.state.publisher


def get_notifier(request: Request) -> NotificationDispatcher:
    return request.app.state.notifier


def get_storage(request: Request) -> AttachmentStorage:
    return request.app.state.storage


def get_typing_store(request: Request) -> TypingStore:
    return request.app.state.typing_store


def get_synchronizer(request: Request) -> LiveViewSynchronizer:
    return request.app.state.synchronizer


def get_clock() -> Clock:
    return SystemClock()


PublisherDep = Annotated[EventPublisher, Depends(get_publisher)]
NotifierDep = Annotated[NotificationDispatcher, Depends(get_notifier)]
StorageDep = Annotated[AttachmentStorage, Depends(get_storage)]
TypingStoreDep = Annotated[TypingStore, Depends(get_typing_store)]
ClockDep = Annotated[Clock, Depends(get_clock)]
