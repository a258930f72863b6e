"""監査記録Repository — 追記と集計のみ（更新・削除なし）"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models.audit_record import AuditRecord
from src.db.models.user import User
from src.db.repositories.base import BaseRepository


@dataclass
class AuditLogFilter:
    """操作ログ検索条件"""

    user_id: int | None = None
    username: str | None = None  # 部分一致
    action: str | None = None
    entity_type: str | None = None
    start: datetime | None = None
    end: datetime | None = None


class AuditRecordRepository(BaseRepository[AuditRecord]):
    """監査記録固有のクエリ"""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(AuditRecord, session)

    async def append(
        self,
        user_id: int,
        action: str,
        entity_type: str,
        timestamp: datetime,
        entity_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> AuditRecord:
        """監査記録を1件追記"""
        return await self.create(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details,
            timestamp=timestamp,
        )

    async def count_by_user_since(self, since: datetime, min_count: int = 1) -> dict[int, int]:
        """since以降の操作数をユーザー別に集計（min_count以上のみ）"""
        action_count = func.count(AuditRecord.id)
        query = (
            select(AuditRecord.user_id, action_count)
            .where(AuditRecord.timestamp >= since)
            .group_by(AuditRecord.user_id)
            .having(action_count >= min_count)
        )
        result = await self._session.execute(query)
        return {user_id: count for user_id, count in result.all()}

    async def recent_for_user(self, user_id: int, limit: int = 10) -> list[AuditRecord]:
        """ユーザーの直近の操作（新しい順）"""
        query = (
            select(AuditRecord)
            .where(AuditRecord.user_id == user_id)
            .order_by(AuditRecord.timestamp.desc(), AuditRecord.id.desc())
            .limit(limit)
        )
        result = await self._session.execute(query)
        return list(result.scalars().all())

    async def activity_stats(self, user_id: int, since: datetime) -> list[tuple[str, str, int]]:
        """操作種別×エンティティ種別ごとの件数（件数の多い順）"""
        action_count = func.count(AuditRecord.id).label("count")
        query = (
            select(AuditRecord.action, AuditRecord.entity_type, action_count)
            .where(
                AuditRecord.user_id == user_id,
                AuditRecord.timestamp >= since,
            )
            .group_by(AuditRecord.action, AuditRecord.entity_type)
            .order_by(action_count.desc(), AuditRecord.action, AuditRecord.entity_type)
        )
        result = await self._session.execute(query)
        return [(action, entity_type, count) for action, entity_type, count in result.all()]

    async def search(
        self,
        filters: AuditLogFilter,
        offset: int = 0,
        limit: int = 50,
    ) -> list[tuple[AuditRecord, str, str]]:
        """操作ログ検索 — (記録, ユーザー名, メール) を新しい順で返す"""
        query = self._apply_filters(
            select(AuditRecord, User.username, User.email).join(User, User.id == AuditRecord.user_id),
            filters,
        )
        query = query.order_by(AuditRecord.timestamp.desc(), AuditRecord.id.desc()).offset(offset).limit(limit)
        result = await self._session.execute(query)
        return [(record, username, email) for record, username, email in result.all()]

    async def count_matching(self, filters: AuditLogFilter) -> int:
        """検索条件に一致する件数"""
        query = self._apply_filters(
            select(func.count(AuditRecord.id)).join(User, User.id == AuditRecord.user_id),
            filters,
        )
        result = await self._session.execute(query)
        return result.scalar_one()

    @staticmethod
    def _apply_filters(query: Select[Any], filters: AuditLogFilter) -> Select[Any]:
        if filters.user_id is not None:
            query = query.where(AuditRecord.user_id == filters.user_id)
        if filters.username:
            query = query.where(User.username.ilike(f"%{filters.username}%"))
        if filters.action:
            query = query.where(AuditRecord.action == filters.action)
        if filters.entity_type:
            query = query.where(AuditRecord.entity_type == filters.entity_type)
        if filters.start is not None:
            query = query.where(AuditRecord.timestamp >= filters.start)
        if filters.end is not None:
            query = query.where(AuditRecord.timestamp <= filters.end)
        return query
