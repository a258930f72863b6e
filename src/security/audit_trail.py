"""監査証跡 — Append-Only操作ログの記録"""

from collections.abc import Callable
from datetime import datetime
from typing import Any

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config.constants import ActionKind
from src.db.base import utc_now
from src.db.repositories.audit_record import AuditRecordRepository
from src.db.session import StorageUnavailableError, run_with_timeout, session_scope
from src.monitoring.metrics import audit_records_total


class AuditTrailService:
    """監査証跡サービス — 成功した状態変更操作をベストエフォートで記録

    記録の失敗は業務操作を失敗させない。失敗はログに残して False を返す。
    成功/失敗の判定は呼び出し側の責務（成功した操作のみ渡す）。
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        timeout_seconds: float = 5.0,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._session_factory = session_factory
        self._timeout_seconds = timeout_seconds
        self._clock = clock

    async def record(
        self,
        user_id: int,
        action: object,
        entity_type: str,
        entity_id: str | int | None = None,
        details: dict[str, Any] | None = None,
    ) -> bool:
        """操作を記録

        Args:
            user_id: 操作ユーザーID
            action: 操作種別（未知の値はUNKNOWNとして記録）
            entity_type: リソース種別タグ
            entity_id: 対象リソースID（一覧取得などは None）
            details: リクエストパス・パラメータ等
        """
        kind = ActionKind.coerce(action)
        timestamp = self._clock()

        try:
            await run_with_timeout(
                self._append(user_id, kind, entity_type, entity_id, details, timestamp),
                self._timeout_seconds,
            )
        except StorageUnavailableError as e:
            audit_records_total.labels(action=kind.value, status="failed").inc()
            logger.warning(
                "監査記録の書き込み失敗: user={}, action={}, entity={}: {}",
                user_id,
                kind.value,
                entity_type,
                str(e),
            )
            return False

        audit_records_total.labels(action=kind.value, status="recorded").inc()
        logger.debug(
            "監査証跡記録",
            user_id=user_id,
            action=kind.value,
            entity_type=entity_type,
            entity_id=entity_id,
        )
        return True

    async def _append(
        self,
        user_id: int,
        kind: ActionKind,
        entity_type: str,
        entity_id: str | int | None,
        details: dict[str, Any] | None,
        timestamp: datetime,
    ) -> None:
        async with session_scope(self._session_factory) as session:
            await AuditRecordRepository(session).append(
                user_id=user_id,
                action=kind.value,
                entity_type=entity_type,
                entity_id=str(entity_id) if entity_id is not None else None,
                details=details,
                timestamp=timestamp,
            )
