"""WebSocket message envelope models."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from amen_messaging.application.exceptions import AppError


class WsInbound(BaseModel):
    """Client → Server.

    ``id`` is an optional client-chosen correlation token echoed back on the
    reply (``ack`` or ``error``).
    """

    type: str  # ping | subscribe | unsubscribe | message.send | typing | mark_read
    id: str | None = None
    data: dict[str, Any] = {}


class WsOutbound(BaseModel):
    """Server → Client."""

    type: str  # pong | ack | snapshot | unsubscribed | error
    id: str | None = None
    data: dict[str, Any] = {}


def error_frame(exc: AppError, request_id: str | None = None) -> WsOutbound:
    return WsOutbound(
        type="error",
        id=request_id,
        data={"code": exc.code, "detail": exc.detail, "retryable": exc.retryable},
    )


def snapshot_frame(scope: dict[str, str], items: list[dict[str, Any]]) -> WsOutbound:
    return WsOutbound(type="snapshot", data={**scope, "items": items})
