"""Cursor-based pagination helpers.

Cursor format: base64("<iso-timestamp>|<uuid>"), optionally prefixed with
"<0|1>|" for orderings that put pinned rows first.
"""
from __future__ import annotations

import base64
from datetime import datetime, timezone
from uuid import UUID

from amen_messaging.application.exceptions import InvalidInputError


def _encode(raw: str) -> str:
    cursor = base64.urlsafe_b64encode(raw.encode()).decode()
    return cursor.rstrip("=")


def _decode(cursor: str) -> str:
    # Restore base64 padding if it was stripped
    cursor += "=" * ((4 - len(cursor) % 4) % 4)
    return base64.urlsafe_b64decode(cursor.encode()).decode()


def encode_cursor(ts: datetime | None, uid: UUID) -> str:
    ts_str = (ts or datetime.min.replace(tzinfo=timezone.utc)).isoformat()
    return _encode(f"{ts_str}|{uid}")


def decode_cursor(cursor: str) -> tuple[datetime, UUID]:
    try:
        ts_str, uid_str = _decode(cursor).split("|", 1)
        return datetime.fromisoformat(ts_str), UUID(uid_str)
    except ValueError as exc:
        raise InvalidInputError("Malformed cursor") from exc


def encode_inbox_cursor(pinned: bool, ts: datetime, uid: UUID) -> str:
    return _encode(f"{int(pinned)}|{ts.isoformat()}|{uid}")


def decode_inbox_cursor(cursor: str) -> tuple[bool, datetime, UUID]:
    try:
        pinned, ts_str, uid_str = _decode(cursor).split("|", 2)
        return pinned == "1", datetime.fromisoformat(ts_str), UUID(uid_str)
    except ValueError as exc:
        raise InvalidInputError("Malformed cursor") from exc
