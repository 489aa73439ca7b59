from __future__ import annotations

from datetime import datetime
from typing import Protocol

from amen_messaging.domain.entities.account import Account, Block


class RelationshipReader(Protocol):
    async def get_account(self, account_id: str) -> Account | None: ...

    async def get_accounts(self, account_ids: list[str]) -> dict[str, Account]: ...

    async def follows(self, follower_id: str, followee_id: str) -> bool: ...

    async def is_blocked(self, account_a: str, account_b: str) -> bool:
        """True if either account has blocked the other."""
        ...

    async def list_blocked(self, blocker_id: str) -> list[Block]: ...


class RelationshipWriter(Protocol):
    async def upsert_account(self, account: Account) -> None: ...

    async def delete_account(self, account_id: str) -> None: ...

    async def set_follow(self, follower_id: str, followee_id: str, following: bool) -> None: ...

    async def block(self, blocker_id: str, blocked_id: str, ts: datetime) -> None: ...

    async def unblock(self, blocker_id: str, blocked_id: str) -> None: ...
