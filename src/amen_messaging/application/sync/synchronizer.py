"""In-process fan-out of authoritative changes to live, ordered views."""
from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Callable, Protocol, Union

from amen_messaging.application.ports.clock import Clock, SystemClock
from amen_messaging.application.sync.projection import (
    ConversationListProjection,
    MessageListProjection,
    TypingProjection,
)
from amen_messaging.application.sync.scopes import (
    Change,
    ConversationListScope,
    Entity,
    MessageListScope,
    Scope,
    TypingScope,
)
from amen_messaging.domain.entities.conversation import Conversation
from amen_messaging.domain.entities.message import Message
from amen_messaging.domain.entities.typing_state import TypingState
from amen_messaging.domain.value_objects.enums import ChangeKind

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[list[Any]], None]
Projection = Union[ConversationListProjection, MessageListProjection, TypingProjection]


class SnapshotLoader(Protocol):
    async def load(self, scope: Scope) -> list[Entity]:
        """Fetch the current authoritative contents of a scope."""
        ...


class Subscription:
    """Handle returned by ``subscribe``. ``unsubscribe`` may be called any number of times."""

    def __init__(
        self,
        synchronizer: LiveViewSynchronizer,
        scope: Scope,
        key: int,
        callback: SnapshotCallback,
        viewer: str | None = None,
        on_revoke: Callable[[], None] | None = None,
    ) -> None:
        self.scope = scope
        self.viewer = viewer
        self.callback = callback
        self._on_revoke = on_revoke
        self._synchronizer = synchronizer
        self._key = key
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._synchronizer._detach(self.scope, self._key)

    def _revoke(self) -> None:
        self._active = False
        if self._on_revoke is not None:
            try:
                self._on_revoke()
            except Exception:
                logger.exception("Revocation callback failed for %s", self.scope)


class _Channel:
    __slots__ = ("projection", "subscribers", "buffer", "ready", "error")

    def __init__(self, projection: Projection) -> None:
        self.projection = projection
        self.subscribers: dict[int, Subscription] = {}
        self.buffer: list[Change] | None = []
        self.ready = asyncio.Event()
        self.error: BaseException | None = None

    @property
    def loading(self) -> bool:
        return self.buffer is not None


class LiveViewSynchronizer:
    """Keeps one projection per scope and pushes full snapshots to subscribers.

    The first subscription to a scope loads it through the ``SnapshotLoader``;
    changes that arrive while the load is in flight are buffered and replayed
    on top of it. Callbacks run synchronously inside ``apply``/``echo``.
    """

    def __init__(
        self,
        loader: SnapshotLoader,
        *,
        typing_timeout_seconds: float = 5.0,
        clock: Clock | None = None,
    ) -> None:
        self._loader = loader
        self._typing_timeout = typing_timeout_seconds
        self._clock = clock or SystemClock()
        self._channels: dict[Scope, _Channel] = {}
        self._keys = itertools.count(1)

    def _new_projection(self, scope: Scope) -> Projection:
        if isinstance(scope, ConversationListScope):
            return ConversationListProjection(scope.account_id)
        if isinstance(scope, MessageListScope):
            return MessageListProjection(scope.conversation_id)
        return TypingProjection(scope.conversation_id, self._typing_timeout, self._clock)

    async def subscribe(
        self,
        scope: Scope,
        callback: SnapshotCallback,
        *,
        viewer: str | None = None,
        on_revoke: Callable[[], None] | None = None,
    ) -> Subscription:
        """Attach ``callback`` to ``scope`` and deliver the current snapshot to it.

        When ``viewer`` is given for a message or typing scope, the
        subscription is dropped as soon as a conversation change no longer
        lists the viewer as a participant; ``on_revoke`` is then called once.
        """
        while True:
            channel = self._channels.get(scope)
            if channel is None:
                channel = _Channel(self._new_projection(scope))
                self._channels[scope] = channel
                await self._load(scope, channel)
            elif channel.loading:
                await channel.ready.wait()
                if channel.error is not None:
                    raise channel.error
            if self._channels.get(scope) is channel:
                break
            # Torn down while we waited; its projection missed changes.
            logger.debug("Channel for %s was dropped during load, reloading", scope)

        key = next(self._keys)
        subscription = Subscription(self, scope, key, callback, viewer, on_revoke)
        channel.subscribers[key] = subscription
        self._deliver(scope, channel, only=key)
        return subscription

    async def _load(self, scope: Scope, channel: _Channel) -> None:
        try:
            items = await self._loader.load(scope)
        except BaseException as exc:
            channel.error = exc
            channel.buffer = None
            channel.ready.set()
            if self._channels.get(scope) is channel:
                del self._channels[scope]
            raise

        channel.projection.load(items)  # type: ignore[arg-type]
        buffered, channel.buffer = channel.buffer or [], None
        for change in buffered:
            channel.projection.apply(change)
        channel.ready.set()
        logger.debug(
            "Loaded %s with %d items (%d buffered changes)", scope, len(items), len(buffered),
        )

    def _detach(self, scope: Scope, key: int) -> None:
        channel = self._channels.get(scope)
        if channel is None:
            return
        channel.subscribers.pop(key, None)
        if not channel.subscribers and not channel.loading:
            del self._channels[scope]

    @property
    def channel_count(self) -> int:
        return len(self._channels)

    def projection(self, scope: Scope) -> Projection | None:
        channel = self._channels.get(scope)
        if channel is None or channel.loading:
            return None
        return channel.projection

    def snapshot(self, scope: Scope) -> list[Any] | None:
        projection = self.projection(scope)
        return None if projection is None else projection.snapshot()

    def apply(self, change: Change) -> None:
        """Feed one authoritative change to every scope it can affect."""
        if change.kind == ChangeKind.UPSERT and isinstance(change.entity, Conversation):
            self._revoke_departed(change.entity)
        for scope in self._route(change.entity):
            channel = self._channels.get(scope)
            if channel is None:
                continue
            if channel.loading:
                channel.buffer.append(change)  # type: ignore[union-attr]
                continue
            if channel.projection.apply(change):
                self._deliver(scope, channel)

    def _revoke_departed(self, conversation: Conversation) -> None:
        members = set(conversation.participant_ids)
        for scope in (MessageListScope(conversation.id), TypingScope(conversation.id)):
            channel = self._channels.get(scope)
            if channel is None:
                continue
            departed = [
                key for key, subscription in channel.subscribers.items()
                if subscription.viewer is not None and subscription.viewer not in members
            ]
            for key in departed:
                subscription = channel.subscribers[key]
                self._detach(scope, key)
                logger.info("Revoked %s for former participant %s", scope, subscription.viewer)
                subscription._revoke()

    def echo(self, message: Message) -> None:
        """Show a message the local user is sending before the server confirms it."""
        scope = MessageListScope(message.conversation_id)
        channel = self._channels.get(scope)
        if channel is None or channel.loading:
            return
        projection = channel.projection
        if isinstance(projection, MessageListProjection) and projection.echo(message):
            self._deliver(scope, channel)

    def _route(self, entity: Entity) -> list[Scope]:
        if isinstance(entity, Message):
            return [MessageListScope(entity.conversation_id)]
        if isinstance(entity, TypingState):
            return [TypingScope(entity.conversation_id)]
        if isinstance(entity, Conversation):
            scopes: list[Scope] = [ConversationListScope(a) for a in entity.participant_ids]
            # Former participants still hold the entry and must see it leave.
            for scope, channel in self._channels.items():
                if (
                    isinstance(scope, ConversationListScope)
                    and scope not in scopes
                    and entity.id in channel.projection  # type: ignore[operator]
                ):
                    scopes.append(scope)
            return scopes
        return []

    def _deliver(self, scope: Scope, channel: _Channel, only: int | None = None) -> None:
        snapshot = channel.projection.snapshot()
        keys = [only] if only is not None else list(channel.subscribers)
        for key in keys:
            subscription = channel.subscribers.get(key)
            if subscription is None:
                continue
            try:
                subscription.callback(list(snapshot))
            except Exception:
                logger.exception("Subscriber callback failed for %s", scope)
