from __future__ import annotations

import asyncio
import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from amen_messaging.api.deps import get_verifier
from amen_messaging.api.v1.schemas.conversation import ConversationResponse
from amen_messaging.api.v1.schemas.message import MessageResponse, SendMessageRequest
from amen_messaging.api.v1.schemas.misc import TypingResponse
from amen_messaging.application.dto.message import SendMessageDTO
from amen_messaging.application.dto.principal import Principal
from amen_messaging.application.exceptions import (
    AppError,
    InvalidInputError,
    NotAuthenticatedError,
    PermissionDeniedError,
)
from amen_messaging.application.sync.projection import MessageListProjection
from amen_messaging.application.sync.scopes import (
    ConversationListScope,
    MessageListScope,
    Scope,
    scope_from_wire,
)
from amen_messaging.application.sync.synchronizer import LiveViewSynchronizer
from amen_messaging.config import settings
from amen_messaging.infrastructure.ws.manager import ConnectionManager, WsSession
from amen_messaging.infrastructure.ws.protocol import WsInbound, WsOutbound, error_frame
from amen_messaging.services import conversation_service, message_service, typing_service

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])

manager = ConnectionManager()


def get_manager() -> ConnectionManager:
    return manager


async def _authenticate(token: str) -> Principal | None:
    try:
        return await get_verifier().verify(token)
    except NotAuthenticatedError:
        logger.debug("WS auth failed", exc_info=True)
        return None


def _renderer(synchronizer: LiveViewSynchronizer, principal: Principal):
    account_id = principal.account_id

    def render(scope: Scope, items: list[Any]) -> list[dict[str, Any]]:
        if isinstance(scope, ConversationListScope):
            return [
                ConversationResponse.for_viewer(c, account_id).model_dump(mode="json")
                for c in items
            ]
        if isinstance(scope, MessageListScope):
            projection = synchronizer.projection(scope)
            rendered = []
            for m in items:
                data = MessageResponse.for_viewer(m, account_id).model_dump(mode="json")
                data["pending"] = (
                    isinstance(projection, MessageListProjection) and projection.is_pending(m.id)
                )
                rendered.append(data)
            return rendered
        return [
            TypingResponse.from_entity(s).model_dump(mode="json")
            for s in items
            if s.account_id != account_id
        ]

    return render


@router.websocket("/api/v1/messaging/ws")
async def ws_messaging(
    websocket: WebSocket,
    token: str = Query(...),
) -> None:
    principal = await _authenticate(token)
    if principal is None:
        await websocket.close(code=4001, reason="Authentication failed")
        return

    synchronizer: LiveViewSynchronizer = websocket.app.state.synchronizer
    session = WsSession(
        websocket,
        principal,
        synchronizer,
        _renderer(synchronizer, principal),
        queue_size=settings.WS_SEND_QUEUE_SIZE,
    )
    await manager.connect(session)

    writer_task = asyncio.create_task(
        session.run_writer(), name=f"ws-writer-{principal.account_id}",
    )
    heartbeat_task = asyncio.create_task(
        _heartbeat(session), name=f"ws-heartbeat-{principal.account_id}",
    )
    reader_task = asyncio.create_task(
        _read_loop(session), name=f"ws-reader-{principal.account_id}",
    )
    try:
        done, _pending = await asyncio.wait(
            {writer_task, reader_task}, return_when=asyncio.FIRST_COMPLETED,
        )
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.error("WS error for %s", principal.account_id, exc_info=exc)
    finally:
        for task in (reader_task, writer_task, heartbeat_task):
            task.cancel()
        manager.disconnect(session)


async def _heartbeat(session: WsSession) -> None:
    interval = settings.WS_HEARTBEAT_SECONDS
    while True:
        await asyncio.sleep(interval)
        session.send(WsOutbound(type="pong"))


async def _read_loop(session: WsSession) -> None:
    while True:
        raw = await session.websocket.receive_text()
        try:
            msg = WsInbound.model_validate_json(raw)
        except ValidationError:
            session.send(error_frame(InvalidInputError("Malformed frame")))
            continue

        try:
            reply = await _dispatch(session, msg)
        except AppError as exc:
            session.send(error_frame(exc, msg.id))
            continue
        if reply is not None:
            session.send(WsOutbound(type="ack", id=msg.id, data=reply))


async def _dispatch(session: WsSession, msg: WsInbound) -> dict[str, Any] | None:
    if msg.type == "ping":
        session.send(WsOutbound(type="pong", id=msg.id))
        return None
    if msg.type == "subscribe":
        scope = await _authorized_scope(session, msg.data)
        await session.subscribe(scope)
        return {}
    if msg.type == "unsubscribe":
        scope = _parse_scope(session.principal, msg.data)
        return {"unsubscribed": session.unsubscribe(scope)}
    if msg.type == "message.send":
        return await _handle_send(session, msg.data)
    if msg.type == "typing":
        return await _handle_typing(session, msg.data)
    if msg.type == "mark_read":
        conversation_id = _conversation_id(msg.data)
        async with _uow(session) as uow:
            await message_service.mark_read(conversation_id, session.principal, uow)
        return {}
    raise InvalidInputError(f"Unknown frame type: {msg.type}")


def _uow(session: WsSession):
    return session.websocket.app.state.uow_factory()


def _conversation_id(data: dict[str, Any]) -> UUID:
    try:
        return UUID(str(data["conversation_id"]))
    except (KeyError, ValueError) as exc:
        raise InvalidInputError("conversation_id is required") from exc


def _parse_scope(principal: Principal, data: dict[str, Any]) -> Scope:
    kind = data.get("kind", "")
    key = data.get("key") or (principal.account_id if kind == "conversations" else "")
    try:
        return scope_from_wire(kind, str(key))
    except ValueError as exc:
        raise InvalidInputError(str(exc)) from exc


async def _authorized_scope(session: WsSession, data: dict[str, Any]) -> Scope:
    principal = session.principal
    scope = _parse_scope(principal, data)
    if isinstance(scope, ConversationListScope):
        if scope.account_id != principal.account_id:
            raise PermissionDeniedError("Cannot subscribe to another account's conversations")
        return scope
    async with _uow(session) as uow:
        await conversation_service.get_conversation(scope.conversation_id, principal, uow)
    return scope


async def _handle_send(session: WsSession, data: dict[str, Any]) -> dict[str, Any]:
    conversation_id = _conversation_id(data)
    try:
        body = SendMessageRequest.model_validate(data)
    except ValidationError as exc:
        raise InvalidInputError(str(exc)) from exc
    dto = SendMessageDTO(
        conversation_id=conversation_id,
        text=body.text,
        client_msg_id=body.client_msg_id,
        attachments=tuple(a.to_entity() for a in body.attachments),
        reply_to_message_id=body.reply_to_message_id,
    )
    app_state = session.websocket.app.state
    async with _uow(session) as uow:
        message, created = await message_service.send_message(
            dto, session.principal, uow, app_state.notifier,
        )
    if created:
        # Local views show the message until the committed change comes back over the bus.
        app_state.synchronizer.echo(message)
    return {
        "created": created,
        "message": MessageResponse.for_viewer(message, session.principal.account_id).model_dump(
            mode="json",
        ),
    }


async def _handle_typing(session: WsSession, data: dict[str, Any]) -> dict[str, Any]:
    conversation_id = _conversation_id(data)
    app_state = session.websocket.app.state
    async with _uow(session) as uow:
        await typing_service.set_typing(
            conversation_id,
            session.principal,
            bool(data.get("is_typing", True)),
            uow,
            app_state.typing_store,
            app_state.publisher,
        )
    return {}
