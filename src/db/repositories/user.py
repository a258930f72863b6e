"""ユーザーRepository — 監視フラグ操作"""

from collections.abc import Iterable

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models.user import User
from src.db.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """ユーザー固有のクエリ"""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(User, session)

    async def get_by_username(self, username: str) -> User | None:
        """ユーザー名で取得"""
        result = await self._session.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    async def mark_monitored(self, user_ids: Iterable[int]) -> list[int]:
        """監視フラグを立てる（未設定のユーザーのみ）

        Returns:
            今回新たにフラグが立ったユーザーIDのリスト
        """
        ids = sorted(set(user_ids))
        if not ids:
            return []
        stmt = (
            update(User)
            .where(User.id.in_(ids), User.is_monitored.is_(False))
            .values(is_monitored=True)
            .returning(User.id)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return sorted(result.scalars().all())

    async def list_monitored(self) -> list[User]:
        """監視対象ユーザー一覧"""
        result = await self._session.execute(
            select(User).where(User.is_monitored.is_(True)).order_by(User.id)
        )
        return list(result.scalars().all())

    async def clear_monitored(self, user_id: int) -> bool:
        """監視フラグを解除（管理者操作）

        Returns:
            ユーザーが存在したか
        """
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(is_monitored=False)
            .returning(User.id)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none() is not None
