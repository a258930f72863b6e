"""リポジトリ基底 — 追加・件数"""

from typing import Any, Generic, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.base import Base

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """セッションに紐づく汎用リポジトリ

    監査記録・ユーザーは通常運用で削除しないため delete は持たない。
    コミットは呼び出し側のセッションスコープに任せる。
    """

    def __init__(self, model: type[ModelT], session: AsyncSession) -> None:
        self._model = model
        self._session = session

    def _where_equal(self, query: Select[Any], filters: dict[str, Any]) -> Select[Any]:
        # None と未知の列名は無視
        for column, value in filters.items():
            if value is not None and hasattr(self._model, column):
                query = query.where(getattr(self._model, column) == value)
        return query

    async def create(self, **values: Any) -> ModelT:
        """追加してflush（採番済みのインスタンスを返す）"""
        instance = self._model(**values)
        self._session.add(instance)
        await self._session.flush()
        return instance

    async def count(self, **filters: Any) -> int:
        query = self._where_equal(select(func.count()).select_from(self._model), filters)
        return (await self._session.execute(query)).scalar_one()
