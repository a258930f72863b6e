"""アクティビティ分析 — 監視対象ユーザーと操作統計の参照

全て読み取り専用。ここでの参照は監査記録に含めない
（調査行為自体が異常検知ウィンドウに加算されないようにする）。
"""

import math
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.db.base import utc_now
from src.db.repositories.audit_record import AuditLogFilter, AuditRecordRepository
from src.db.repositories.user import UserRepository
from src.db.session import run_with_timeout


@dataclass
class ActionSummary:
    """直近操作の要約"""

    action: str
    entity_type: str
    timestamp: datetime


@dataclass
class UserFlagState:
    """ユーザーの監視フラグ状態"""

    user_id: int
    monitored: bool
    last_login_at: datetime | None = None


@dataclass
class MonitoredUser:
    """監視対象ユーザー + 直近操作"""

    user_id: int
    username: str
    email: str
    role: str
    flag_state: UserFlagState
    recent_actions: list[ActionSummary] = field(default_factory=list)


@dataclass
class ActivityStat:
    """操作種別×エンティティ種別ごとの件数"""

    action: str
    entity_type: str
    count: int


@dataclass
class ActionLogEntry:
    """操作ログ1件（検索結果）"""

    id: int
    user_id: int
    username: str
    email: str
    action: str
    entity_type: str
    entity_id: str | None
    details: dict[str, object] | None
    timestamp: datetime


@dataclass
class ActionLogPage:
    """操作ログ検索結果ページ"""

    logs: list[ActionLogEntry]
    total: int
    page: int
    total_pages: int


class ActivityQueryService:
    """監視状態・操作統計の参照サービス"""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        window_seconds: float = 900.0,
        recent_limit: int = 10,
        timeout_seconds: float = 5.0,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._session_factory = session_factory
        self._window = timedelta(seconds=window_seconds)
        self._recent_limit = recent_limit
        self._timeout_seconds = timeout_seconds
        self._clock = clock

    async def list_monitored_users(self) -> list[MonitoredUser]:
        """監視対象ユーザー一覧（各ユーザーの直近操作を新しい順で付与）"""
        return await run_with_timeout(self._list_monitored_users(), self._timeout_seconds)

    async def _list_monitored_users(self) -> list[MonitoredUser]:
        async with self._session_factory() as session:
            users = await UserRepository(session).list_monitored()
            records = AuditRecordRepository(session)

            monitored: list[MonitoredUser] = []
            for user in users:
                recent = await records.recent_for_user(user.id, limit=self._recent_limit)
                monitored.append(
                    MonitoredUser(
                        user_id=user.id,
                        username=user.username,
                        email=user.email,
                        role=user.role,
                        flag_state=UserFlagState(
                            user_id=user.id,
                            monitored=user.is_monitored,
                            last_login_at=user.last_login_at,
                        ),
                        recent_actions=[
                            ActionSummary(
                                action=r.action,
                                entity_type=r.entity_type,
                                timestamp=r.timestamp,
                            )
                            for r in recent
                        ],
                    )
                )
            return monitored

    async def get_user_activity_stats(
        self,
        user_id: int,
        window: timedelta | None = None,
    ) -> list[ActivityStat]:
        """直近ウィンドウ内の操作統計（件数の多い順）"""
        since = self._clock() - (window or self._window)
        return await run_with_timeout(self._activity_stats(user_id, since), self._timeout_seconds)

    async def _activity_stats(self, user_id: int, since: datetime) -> list[ActivityStat]:
        async with self._session_factory() as session:
            rows = await AuditRecordRepository(session).activity_stats(user_id, since)
            return [ActivityStat(action=a, entity_type=e, count=c) for a, e, c in rows]

    async def search_logs(
        self,
        filters: AuditLogFilter | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> ActionLogPage:
        """操作ログのページ検索"""
        page = max(page, 1)
        limit = max(limit, 1)
        return await run_with_timeout(
            self._search_logs(filters or AuditLogFilter(), page, limit),
            self._timeout_seconds,
        )

    async def _search_logs(self, filters: AuditLogFilter, page: int, limit: int) -> ActionLogPage:
        async with self._session_factory() as session:
            repo = AuditRecordRepository(session)
            total = await repo.count_matching(filters)
            rows = await repo.search(filters, offset=(page - 1) * limit, limit=limit)

        return ActionLogPage(
            logs=[
                ActionLogEntry(
                    id=record.id,
                    user_id=record.user_id,
                    username=username,
                    email=email,
                    action=record.action,
                    entity_type=record.entity_type,
                    entity_id=record.entity_id,
                    details=record.details,
                    timestamp=record.timestamp,
                )
                for record, username, email in rows
            ],
            total=total,
            page=page,
            total_pages=math.ceil(total / limit) if total else 0,
        )

    async def clear_monitored(self, user_id: int) -> bool:
        """監視フラグの手動解除（管理者による上書き操作）"""
        return await run_with_timeout(self._clear_monitored(user_id), self._timeout_seconds)

    async def _clear_monitored(self, user_id: int) -> bool:
        async with self._session_factory() as session:
            cleared = await UserRepository(session).clear_monitored(user_id)
            await session.commit()
            return cleared
