from __future__ import annotations

from datetime import datetime

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from amen_messaging.domain.entities.account import Account, Block
from amen_messaging.infrastructure.db.mappers import account as mapper
from amen_messaging.infrastructure.db.models.account import AccountModel, BlockModel, FollowModel


class RelationshipReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_account(self, account_id: str) -> Account | None:
        accounts = await self.get_accounts([account_id])
        return accounts.get(account_id)

    async def get_accounts(self, account_ids: list[str]) -> dict[str, Account]:
        if not account_ids:
            return {}
        stmt = (
            select(AccountModel)
            .where(AccountModel.id.in_(account_ids))
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return {m.id: mapper.account_to_entity(m) for m in result.scalars().all()}

    async def follows(self, follower_id: str, followee_id: str) -> bool:
        stmt = (
            select(FollowModel.follower_id)
            .where(
                FollowModel.follower_id == follower_id,
                FollowModel.followee_id == followee_id,
            )
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def is_blocked(self, account_a: str, account_b: str) -> bool:
        stmt = (
            select(BlockModel.blocker_id)
            .where(
                or_(
                    and_(BlockModel.blocker_id == account_a, BlockModel.blocked_id == account_b),
                    and_(BlockModel.blocker_id == account_b, BlockModel.blocked_id == account_a),
                )
            )
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def list_blocked(self, blocker_id: str) -> list[Block]:
        stmt = (
            select(BlockModel)
            .where(BlockModel.blocker_id == blocker_id)
            .order_by(BlockModel.created_at.desc())
        )
        result = await self._session.execute(stmt)
        return [mapper.block_to_entity(m) for m in result.scalars().all()]


class RelationshipWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def upsert_account(self, account: Account) -> None:
        values = {
            "display_name": account.display_name,
            "username": account.username,
            "avatar_url": account.avatar_url,
            "allows_messages_from": account.allows_messages_from.value,
        }
        stmt = (
            pg_insert(AccountModel)
            .values(id=account.id, **values)
            .on_conflict_do_update(index_elements=[AccountModel.id], set_=values)
        )
        await self._session.execute(stmt)

    async def delete_account(self, account_id: str) -> None:
        await self._session.execute(
            delete(FollowModel).where(
                or_(FollowModel.follower_id == account_id, FollowModel.followee_id == account_id)
            )
        )
        await self._session.execute(delete(AccountModel).where(AccountModel.id == account_id))

    async def set_follow(self, follower_id: str, followee_id: str, following: bool) -> None:
        if following:
            stmt = (
                pg_insert(FollowModel)
                .values(follower_id=follower_id, followee_id=followee_id)
                .on_conflict_do_nothing()
            )
        else:
            stmt = delete(FollowModel).where(
                FollowModel.follower_id == follower_id,
                FollowModel.followee_id == followee_id,
            )
        await self._session.execute(stmt)

    async def block(self, blocker_id: str, blocked_id: str, ts: datetime) -> None:
        stmt = (
            pg_insert(BlockModel)
            .values(blocker_id=blocker_id, blocked_id=blocked_id, created_at=ts)
            .on_conflict_do_nothing()
        )
        await self._session.execute(stmt)

    async def unblock(self, blocker_id: str, blocked_id: str) -> None:
        await self._session.execute(
            delete(BlockModel).where(
                BlockModel.blocker_id == blocker_id,
                BlockModel.blocked_id == blocked_id,
            )
        )
