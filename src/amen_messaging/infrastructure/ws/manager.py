"""In-process WebSocket sessions bound to live-view subscriptions."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from fastapi import WebSocket

from amen_messaging.application.dto.principal import Principal
from amen_messaging.application.sync.scopes import ConversationListScope, Scope, scope_to_wire
from amen_messaging.application.sync.synchronizer import LiveViewSynchronizer, Subscription
from amen_messaging.infrastructure.ws.protocol import WsOutbound, snapshot_frame

logger = logging.getLogger(__name__)

SnapshotRenderer = Callable[[Scope, list[Any]], list[dict[str, Any]]]

_CLOSE = object()


class WsSession:
    """One socket: its principal, its subscriptions and a bounded send queue.

    Synchronizer callbacks are synchronous, so frames are queued and written
    by ``run_writer``. A client that stops reading overflows the queue and is
    disconnected.
    """

    def __init__(
        self,
        websocket: WebSocket,
        principal: Principal,
        synchronizer: LiveViewSynchronizer,
        render: SnapshotRenderer,
        *,
        queue_size: int = 256,
    ) -> None:
        self.websocket = websocket
        self.principal = principal
        self._synchronizer = synchronizer
        self._render = render
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=queue_size)
        self._subscriptions: dict[Scope, Subscription] = {}
        self._closed = False

    @property
    def scopes(self) -> list[Scope]:
        return list(self._subscriptions)

    def send(self, frame: WsOutbound) -> None:
        if self._closed:
            return
        try:
            self._queue.put_nowait(frame)
        except asyncio.QueueFull:
            logger.warning("WS send queue full for %s, closing", self.principal.account_id)
            self.close()

    async def run_writer(self) -> None:
        while True:
            frame = await self._queue.get()
            if frame is _CLOSE:
                await self.websocket.close(code=1013, reason="Too slow")
                return
            await self.websocket.send_text(frame.model_dump_json())

    async def subscribe(self, scope: Scope) -> None:
        if scope in self._subscriptions:
            snapshot = self._synchronizer.snapshot(scope)
            if snapshot is not None:
                self._on_snapshot(scope, snapshot)
            return
        viewer = None if isinstance(scope, ConversationListScope) else self.principal.account_id
        subscription = await self._synchronizer.subscribe(
            scope,
            lambda items: self._on_snapshot(scope, items),
            viewer=viewer,
            on_revoke=lambda: self._on_revoked(scope),
        )
        if self._closed:
            subscription.unsubscribe()
            return
        self._subscriptions[scope] = subscription

    def unsubscribe(self, scope: Scope) -> bool:
        subscription = self._subscriptions.pop(scope, None)
        if subscription is None:
            return False
        subscription.unsubscribe()
        return True

    def _on_snapshot(self, scope: Scope, items: list[Any]) -> None:
        self.send(snapshot_frame(scope_to_wire(scope), self._render(scope, items)))

    def _on_revoked(self, scope: Scope) -> None:
        """The principal left the conversation behind ``scope``."""
        self._subscriptions.pop(scope, None)
        self.send(WsOutbound(type="unsubscribed", data=scope_to_wire(scope)))

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for subscription in self._subscriptions.values():
            subscription.unsubscribe()
        self._subscriptions.clear()
        # Wake the writer even when the queue is full.
        while True:
            try:
                self._queue.put_nowait(_CLOSE)
                break
            except asyncio.QueueFull:
                self._queue.get_nowait()


class ConnectionManager:
    """Tracks open sessions per account."""

    def __init__(self) -> None:
        self._sessions: dict[str, set[WsSession]] = {}

    async def connect(self, session: WsSession) -> None:
        await session.websocket.accept()
        self._sessions.setdefault(session.principal.account_id, set()).add(session)
        logger.debug(
            "WS connected: %s (accounts=%d)", session.principal.account_id, len(self._sessions),
        )

    def disconnect(self, session: WsSession) -> None:
        session.close()
        account_id = session.principal.account_id
        sessions = self._sessions.get(account_id)
        if sessions:
            sessions.discard(session)
            if not sessions:
                del self._sessions[account_id]
        logger.debug("WS disconnected: %s", account_id)

    def sessions_for(self, account_id: str) -> list[WsSession]:
        return list(self._sessions.get(account_id, ()))

    def close_all(self) -> None:
        for sessions in list(self._sessions.values()):
            for session in list(sessions):
                self.disconnect(session)
