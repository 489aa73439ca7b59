"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

import pytest

from amen_messaging.application.dto.conversation import ConversationFilterDTO
from amen_messaging.application.dto.principal import Principal
from amen_messaging.application.repositories.outbox import OutboxRecord
from amen_messaging.domain.entities.account import Account, Block
from amen_messaging.domain.entities.conversation import Conversation
from amen_messaging.domain.entities.message import Message
from amen_messaging.domain.entities.message_request import MessageRequest
from amen_messaging.domain.entities.participant import Participant
from amen_messaging.domain.entities.typing_state import TypingState
from amen_messaging.domain.value_objects.enums import (
    MessageType,
    PrivacySetting,
    RequestStatus,
)
from amen_messaging.domain.value_objects.ids import canonical_direct_id
from amen_messaging.domain.value_objects.tombstone import Tombstone
from amen_messaging.infrastructure.db.cursor import decode_cursor, decode_inbox_cursor


@pytest.fixture
def alice() -> Principal:
    return Principal(account_id="u-alice", display_name="Alice")


@pytest.fixture
def bob() -> Principal:
    return Principal(account_id="u-bob", display_name="Bob")


@pytest.fixture
def carol() -> Principal:
    return Principal(account_id="u-carol", display_name="Carol")


@pytest.fixture
def db() -> FakeDB:
    return FakeDB()


@pytest.fixture
def uow(db) -> FakeUoW:
    return FakeUoW(db)


def _now() -> datetime:
    return datetime.now(timezone.utc)


# --- In-memory storage shared by every FakeUoW built on it ---------------


@dataclass
class FakeDB:
    conversations: dict[UUID, Conversation] = field(default_factory=dict)
    participants: dict[tuple[UUID, str], Participant] = field(default_factory=dict)
    messages: dict[UUID, Message] = field(default_factory=dict)
    requests: dict[UUID, MessageRequest] = field(default_factory=dict)
    accounts: dict[str, Account] = field(default_factory=dict)
    follows: set[tuple[str, str]] = field(default_factory=set)
    blocks: dict[tuple[str, str], Block] = field(default_factory=dict)
    outbox: list[dict[str, Any]] = field(default_factory=list)

    def load_conversation(self, conversation_id: UUID) -> Conversation | None:
        conversation = self.conversations.get(conversation_id)
        if conversation is None:
            return None
        members = sorted(
            (p for (cid, _), p in self.participants.items() if cid == conversation_id),
            key=lambda p: (p.joined_at, p.account_id),
        )
        return replace(conversation, participants=tuple(members))

    def bump_conversation(self, conversation_id: UUID, **values: Any) -> None:
        current = self.conversations[conversation_id]
        self.conversations[conversation_id] = replace(
            current, revision=current.revision + 1, **values,
        )

    def bump_participant(self, conversation_id: UUID, account_id: str, **values: Any) -> None:
        key = (conversation_id, account_id)
        if key in self.participants:
            self.participants[key] = replace(self.participants[key], **values)

    def bump_message(self, message_id: UUID, **values: Any) -> None:
        current = self.messages[message_id]
        self.messages[message_id] = replace(current, revision=current.revision + 1, **values)


class FakeConversationReader:
    def __init__(self, db: FakeDB) -> None:
        self._db = db

    async def get_by_id(self, conversation_id: UUID) -> Conversation | None:
        # Yield so concurrent callers interleave between read and write.
        await asyncio.sleep(0)
        return self._db.load_conversation(conversation_id)

    async def list_for_account(
        self, account_id: str, filters: ConversationFilterDTO,
    ) -> list[Conversation]:
        visible = [
            c for c in (self._db.load_conversation(cid) for cid in self._db.conversations)
            if c is not None and c.is_visible_to(account_id, include_archived=filters.include_archived)
        ]
        visible.sort(key=lambda c: str(c.id), reverse=True)
        visible.sort(key=lambda c: c.activity_at, reverse=True)
        visible.sort(key=lambda c: not c.state_for(account_id).is_pinned)
        if filters.cursor:
            after = decode_inbox_cursor(filters.cursor)
            after = (after[0], after[1], str(after[2]))
            visible = [
                c for c in visible
                if (c.state_for(account_id).is_pinned, c.activity_at, str(c.id)) < after
            ]
        return visible[:filters.limit]


class FakeConversationWriter:
    def __init__(self, db: FakeDB) -> None:
        self._db = db

    async def create_if_absent(self, conversation: Conversation) -> tuple[Conversation, bool]:
        created = conversation.id not in self._db.conversations
        if created:
            self._db.conversations[conversation.id] = replace(conversation, participants=())
            for p in conversation.participants:
                self._db.participants[(conversation.id, p.account_id)] = p
        return self._db.load_conversation(conversation.id), created

    async def record_message(
        self, conversation_id: UUID, message_id: UUID, preview: str, ts: datetime,
    ) -> None:
        current = self._db.conversations[conversation_id]
        if current.last_message_at is None or current.last_message_at <= ts:
            self._db.bump_conversation(
                conversation_id,
                last_message_id=message_id,
                last_message_preview=preview,
                last_message_at=ts,
                updated_at=ts,
            )
        else:
            self._db.bump_conversation(conversation_id, updated_at=ts)

    async def set_request_status(
        self,
        conversation_id: UUID,
        status: RequestStatus,
        *,
        expected: tuple[RequestStatus, ...] | None = None,
        requester_id: str | None = None,
    ) -> bool:
        current = self._db.conversations.get(conversation_id)
        if current is None:
            return False
        if expected is not None and current.request_status not in expected:
            return False
        values: dict[str, Any] = {"request_status": status, "updated_at": _now()}
        if requester_id is not None:
            values["requester_id"] = requester_id
        self._db.bump_conversation(conversation_id, **values)
        return True

    async def update_preview(self, conversation_id: UUID, message_id: UUID, preview: str) -> None:
        if self._db.conversations[conversation_id].last_message_id == message_id:
            self._db.bump_conversation(conversation_id, last_message_preview=preview)

    async def rename(self, conversation_id: UUID, name: str) -> None:
        self._db.bump_conversation(conversation_id, group_name=name)

    async def set_avatar(self, conversation_id: UUID, url: str | None) -> None:
        self._db.bump_conversation(conversation_id, group_avatar_url=url)

    async def transfer_ownership(self, conversation_id: UUID, owner_id: str) -> None:
        self._db.bump_conversation(conversation_id, created_by=owner_id)

    async def touch(self, conversation_id: UUID, ts: datetime) -> None:
        self._db.bump_conversation(conversation_id, updated_at=ts)


class FakeParticipantReader:
    def __init__(self, db: FakeDB) -> None:
        self._db = db

    async def count_pinned(self, account_id: str) -> int:
        return sum(
            1 for (_, aid), p in self._db.participants.items()
            if aid == account_id and p.is_pinned
        )


class FakeParticipantWriter:
    def __init__(self, db: FakeDB) -> None:
        self._db = db

    async def add(self, participant: Participant) -> bool:
        key = (participant.conversation_id, participant.account_id)
        if key in self._db.participants:
            return False
        self._db.participants[key] = participant
        return True

    async def remove(self, conversation_id: UUID, account_id: str) -> None:
        self._db.participants.pop((conversation_id, account_id), None)

    async def set_muted(self, conversation_id: UUID, account_id: str, muted: bool) -> None:
        self._db.bump_participant(conversation_id, account_id, is_muted=muted)

    async def set_pinned(
        self, conversation_id: UUID, account_id: str, pinned_at: datetime | None,
    ) -> None:
        self._db.bump_participant(
            conversation_id, account_id, is_pinned=pinned_at is not None, pinned_at=pinned_at,
        )

    async def set_archived(self, conversation_id: UUID, account_id: str, archived: bool) -> None:
        self._db.bump_participant(conversation_id, account_id, is_archived=archived)

    async def set_tombstone(
        self, conversation_id: UUID, account_id: str, tombstone: Tombstone | None,
    ) -> None:
        self._db.bump_participant(conversation_id, account_id, tombstone=tombstone)

    async def increment_unread(self, conversation_id: UUID, account_ids: list[str]) -> None:
        for account_id in account_ids:
            state = self._db.participants.get((conversation_id, account_id))
            if state is not None:
                self._db.bump_participant(
                    conversation_id, account_id, unread_count=state.unread_count + 1,
                )

    async def reset_unread(self, conversation_id: UUID, account_id: str) -> None:
        self._db.bump_participant(conversation_id, account_id, unread_count=0)

    async def rename_account(self, account_id: str, display_name: str) -> None:
        for (cid, aid) in list(self._db.participants):
            if aid == account_id:
                self._db.bump_participant(cid, aid, display_name=display_name)


class FakeMessageReader:
    def __init__(self, db: FakeDB) -> None:
        self._db = db

    async def get_by_id(self, message_id: UUID) -> Message | None:
        return self._db.messages.get(message_id)

    async def list_messages(
        self, conversation_id: UUID, *, cursor: str | None = None, limit: int = 50,
    ) -> list[Message]:
        history = sorted(
            (m for m in self._db.messages.values() if m.conversation_id == conversation_id),
            key=lambda m: m.sort_key,
        )
        if cursor:
            ts, mid = decode_cursor(cursor)
            history = [m for m in history if m.sort_key < (ts, str(mid))]
        return history[-limit:]

    async def count_from_sender(self, conversation_id: UUID, sender_id: str) -> int:
        return sum(
            1 for m in self._db.messages.values()
            if m.conversation_id == conversation_id and m.sender_id == sender_id
        )

    def _newest_first(self, conversation_id: UUID) -> list[Message]:
        return sorted(
            (m for m in self._db.messages.values() if m.conversation_id == conversation_id),
            key=lambda m: m.sort_key,
            reverse=True,
        )

    async def list_pinned(self, conversation_id: UUID) -> list[Message]:
        pinned = [m for m in self._newest_first(conversation_id) if m.is_pinned]
        return sorted(pinned, key=lambda m: m.pinned_at or m.created_at, reverse=True)

    async def list_starred(self, conversation_id: UUID, account_id: str) -> list[Message]:
        return [m for m in self._newest_first(conversation_id) if account_id in m.starred_by]

    async def search(self, conversation_id: UUID, query: str, *, limit: int) -> list[Message]:
        needle = query.casefold()
        hits = [
            m for m in self._newest_first(conversation_id)
            if not m.is_deleted and needle in m.text.casefold()
        ]
        return hits[:limit]


class FakeMessageWriter:
    def __init__(self, db: FakeDB) -> None:
        self._db = db

    async def create_if_not_exists(self, message: Message) -> tuple[Message, bool]:
        existing = self._db.messages.get(message.id)
        if existing is not None:
            return existing, False
        self._db.messages[message.id] = message
        return message, True

    async def update_text(self, message_id: UUID, text: str, edited_at: datetime) -> None:
        self._db.bump_message(message_id, text=text, edited_at=edited_at)

    async def mark_deleted(self, message_id: UUID, tombstone: Tombstone) -> None:
        self._db.bump_message(
            message_id, text="", attachments=(), tombstone=tombstone,
            is_pinned=False, pinned_by=None, pinned_at=None,
        )

    async def set_pinned(
        self, message_id: UUID, pinned_by: str | None, pinned_at: datetime | None,
    ) -> None:
        self._db.bump_message(
            message_id, is_pinned=pinned_by is not None, pinned_by=pinned_by, pinned_at=pinned_at,
        )

    async def set_reaction(self, message_id: UUID, account_id: str, emoji: str) -> None:
        reactions = dict(self._db.messages[message_id].reactions)
        reactions[account_id] = emoji
        self._db.bump_message(message_id, reactions=reactions)

    async def remove_reaction(self, message_id: UUID, account_id: str) -> None:
        reactions = dict(self._db.messages[message_id].reactions)
        reactions.pop(account_id, None)
        self._db.bump_message(message_id, reactions=reactions)

    async def set_starred(self, message_id: UUID, account_id: str, starred: bool) -> None:
        starred_by = set(self._db.messages[message_id].starred_by)
        if starred:
            starred_by.add(account_id)
        else:
            starred_by.discard(account_id)
        self._db.bump_message(message_id, starred_by=frozenset(starred_by))

    async def mark_read(self, conversation_id: UUID, account_id: str) -> list[UUID]:
        touched = []
        for m in list(self._db.messages.values()):
            if (
                m.conversation_id == conversation_id
                and m.sender_id != account_id
                and account_id not in m.read_by
            ):
                self._db.bump_message(m.id, read_by=m.read_by | {account_id})
                touched.append(m.id)
        return touched


class FakeMessageRequestReader:
    def __init__(self, db: FakeDB) -> None:
        self._db = db

    async def get_by_id(self, request_id: UUID) -> MessageRequest | None:
        return self._db.requests.get(request_id)

    async def get_for_conversation(self, conversation_id: UUID) -> MessageRequest | None:
        for r in self._db.requests.values():
            if r.conversation_id == conversation_id:
                return r
        return None

    async def list_pending_for_recipient(self, account_id: str) -> list[MessageRequest]:
        pending = [
            r for r in self._db.requests.values()
            if r.recipient_id == account_id and r.status == RequestStatus.PENDING
        ]
        return sorted(pending, key=lambda r: r.created_at, reverse=True)


class FakeMessageRequestWriter:
    def __init__(self, db: FakeDB) -> None:
        self._db = db

    async def create_if_absent(self, request: MessageRequest) -> tuple[MessageRequest, bool]:
        for r in self._db.requests.values():
            if r.conversation_id == request.conversation_id:
                return r, False
        self._db.requests[request.id] = request
        return request, True

    async def transition(
        self, request_id: UUID, status: RequestStatus, resolved_at: datetime,
    ) -> bool:
        current = self._db.requests.get(request_id)
        if current is None or current.status != RequestStatus.PENDING:
            return False
        self._db.requests[request_id] = replace(current, status=status, resolved_at=resolved_at)
        return True

    async def mark_read(self, request_id: UUID) -> None:
        self._db.requests[request_id] = replace(self._db.requests[request_id], is_read=True)


class FakeRelationshipReader:
    def __init__(self, db: FakeDB) -> None:
        self._db = db

    async def get_account(self, account_id: str) -> Account | None:
        return self._db.accounts.get(account_id)

    async def get_accounts(self, account_ids: list[str]) -> dict[str, Account]:
        return {a: self._db.accounts[a] for a in account_ids if a in self._db.accounts}

    async def follows(self, follower_id: str, followee_id: str) -> bool:
        return (follower_id, followee_id) in self._db.follows

    async def is_blocked(self, account_a: str, account_b: str) -> bool:
        return (account_a, account_b) in self._db.blocks or (account_b, account_a) in self._db.blocks

    async def list_blocked(self, blocker_id: str) -> list[Block]:
        return [b for (blocker, _), b in self._db.blocks.items() if blocker == blocker_id]


class FakeRelationshipWriter:
    def __init__(self, db: FakeDB) -> None:
        self._db = db

    async def upsert_account(self, account: Account) -> None:
        self._db.accounts[account.id] = account

    async def delete_account(self, account_id: str) -> None:
        self._db.accounts.pop(account_id, None)

    async def set_follow(self, follower_id: str, followee_id: str, following: bool) -> None:
        if following:
            self._db.follows.add((follower_id, followee_id))
        else:
            self._db.follows.discard((follower_id, followee_id))

    async def block(self, blocker_id: str, blocked_id: str, ts: datetime) -> None:
        self._db.blocks.setdefault((blocker_id, blocked_id), Block(blocker_id, blocked_id, ts))

    async def unblock(self, blocker_id: str, blocked_id: str) -> None:
        self._db.blocks.pop((blocker_id, blocked_id), None)


class FakeOutboxWriter:
    def __init__(self, db: FakeDB) -> None:
        self._db = db

    @property
    def _records(self) -> list[dict[str, Any]]:
        return self._db.outbox

    async def add(self, event_type: str, payload: dict[str, Any]) -> None:
        self._db.outbox.append(
            {"id": len(self._db.outbox) + 1, "event_type": event_type, "payload": payload,
             "status": "pending", "attempts": 0}
        )

    async def fetch_pending(self, batch_size: int) -> list[OutboxRecord]:
        due = [r for r in self._db.outbox if r["status"] in ("pending", "failed")][:batch_size]
        for r in due:
            r["status"] = "processing"
        return [OutboxRecord(r["id"], r["event_type"], r["payload"], r["attempts"]) for r in due]

    async def mark_sent(self, ids: list[int]) -> None:
        for r in self._db.outbox:
            if r["id"] in ids:
                r["status"] = "sent"

    async def mark_failed(self, record_id: int, next_retry_at: datetime) -> None:
        for r in self._db.outbox:
            if r["id"] == record_id:
                r["status"] = "failed"
                r["attempts"] += 1


class FakeUoW:
    """In-memory UoW for unit tests. Several instances may share one FakeDB."""

    def __init__(self, db: FakeDB | None = None) -> None:
        self.db = db or FakeDB()
        self.conversations = FakeConversationReader(self.db)
        self.conversations_w = FakeConversationWriter(self.db)
        self.participants = FakeParticipantReader(self.db)
        self.participants_w = FakeParticipantWriter(self.db)
        self.messages = FakeMessageReader(self.db)
        self.messages_w = FakeMessageWriter(self.db)
        self.requests = FakeMessageRequestReader(self.db)
        self.requests_w = FakeMessageRequestWriter(self.db)
        self.relationships = FakeRelationshipReader(self.db)
        self.relationships_w = FakeRelationshipWriter(self.db)
        self.outbox = FakeOutboxWriter(self.db)
        self._committed = False
        self.commits = 0

    async def flush(self) -> None:
        pass

    async def commit(self) -> None:
        self._committed = True
        self.commits += 1

    async def rollback(self) -> None:
        pass

    def events(self, event_type: str | None = None) -> list[dict[str, Any]]:
        return [r for r in self.db.outbox if event_type is None or r["event_type"] == event_type]


# --- Fake ports -----------------------------------------------------------


class FakeNotifier:
    def __init__(self, *, fail: bool = False) -> None:
        self.sent: list[tuple[str, str, UUID, dict[str, Any]]] = []
        self._fail = fail

    async def notify(
        self, account_id: str, event: str, conversation_id: UUID, data: dict[str, Any],
    ) -> None:
        if self._fail:
            raise ConnectionError("push gateway unavailable")
        self.sent.append((account_id, event, conversation_id, data))


class FakeStorage:
    def __init__(self, *, fail: Exception | None = None) -> None:
        self.uploads: dict[str, tuple[bytes, str]] = {}
        self._fail = fail

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        if self._fail is not None:
            raise self._fail
        self.uploads[path] = (data, content_type)
        return f"https://cdn.test/{path}"


class FakeTypingStore:
    def __init__(self) -> None:
        self.states: dict[tuple[UUID, str], TypingState] = {}

    async def set(self, state: TypingState, ttl_seconds: float) -> None:
        self.states[(state.conversation_id, state.account_id)] = state

    async def clear(self, conversation_id: UUID, account_id: str) -> None:
        self.states.pop((conversation_id, account_id), None)

    async def list_states(self, conversation_id: UUID) -> list[TypingState]:
        return [s for (cid, _), s in self.states.items() if cid == conversation_id]


class FakePublisher:
    def __init__(self) -> None:
        self.published: list[tuple[str, dict[str, Any]]] = []

    async def publish(self, channel: str, payload: dict[str, Any]) -> None:
        self.published.append((channel, payload))


# --- Builders -------------------------------------------------------------


def add_account(
    db: FakeDB,
    principal: Principal,
    privacy: PrivacySetting = PrivacySetting.EVERYONE,
) -> Account:
    account = Account(
        id=principal.account_id,
        display_name=principal.name,
        allows_messages_from=privacy,
    )
    db.accounts[account.id] = account
    return account


def follow(db: FakeDB, follower: Principal, followee: Principal) -> None:
    db.follows.add((follower.account_id, followee.account_id))


def mutual(db: FakeDB, a: Principal, b: Principal) -> None:
    follow(db, a, b)
    follow(db, b, a)


def make_direct(
    db: FakeDB,
    a: Principal,
    b: Principal,
    *,
    status: RequestStatus = RequestStatus.ACCEPTED,
    requester: Principal | None = None,
    created_at: datetime | None = None,
) -> Conversation:
    now = created_at or _now()
    cid = canonical_direct_id(a.account_id, b.account_id)
    db.conversations[cid] = Conversation(
        id=cid,
        is_group=False,
        created_by=a.account_id,
        request_status=status,
        requester_id=requester.account_id if requester else None,
        created_at=now,
        updated_at=now,
    )
    for p in (a, b):
        db.participants[(cid, p.account_id)] = Participant(
            conversation_id=cid, account_id=p.account_id, display_name=p.name, joined_at=now,
        )
    return db.load_conversation(cid)


def make_group(
    db: FakeDB,
    owner: Principal,
    *members: Principal,
    name: str = "Choir",
) -> Conversation:
    now = _now()
    cid = uuid.uuid4()
    db.conversations[cid] = Conversation(
        id=cid,
        is_group=True,
        created_by=owner.account_id,
        request_status=RequestStatus.ACCEPTED,
        group_name=name,
        created_at=now,
        updated_at=now,
    )
    for offset, p in enumerate((owner, *members)):
        db.participants[(cid, p.account_id)] = Participant(
            conversation_id=cid,
            account_id=p.account_id,
            display_name=p.name,
            joined_at=now + timedelta(seconds=offset),
        )
    return db.load_conversation(cid)


def make_message(
    *,
    conversation_id: UUID | None = None,
    sender_id: str = "u-alice",
    text: str = "hello",
    created_at: datetime | None = None,
    revision: int = 0,
    message_id: UUID | None = None,
) -> Message:
    return Message(
        id=message_id or uuid.uuid4(),
        conversation_id=conversation_id or uuid.uuid4(),
        sender_id=sender_id,
        type=MessageType.TEXT,
        text=text,
        created_at=created_at or _now(),
        revision=revision,
    )
