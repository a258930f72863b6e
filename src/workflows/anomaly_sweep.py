"""異常検知スイープ — 直近ウィンドウ内の操作数でユーザーを監視対象化"""

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.db.base import utc_now
from src.db.repositories.audit_record import AuditRecordRepository
from src.db.repositories.user import UserRepository
from src.db.session import StorageUnavailableError, run_with_timeout, session_scope
from src.monitoring.metrics import (
    anomaly_sweep_duration_seconds,
    anomaly_sweeps_total,
    users_flagged_total,
)


@dataclass
class SweepResult:
    """スイープ1回分の結果"""

    window_start: datetime
    executed_at: datetime
    suspicious_counts: dict[int, int] = field(default_factory=dict)
    newly_flagged: list[int] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "window_start": self.window_start.isoformat(),
            "executed_at": self.executed_at.isoformat(),
            "suspicious_counts": {str(k): v for k, v in self.suspicious_counts.items()},
            "newly_flagged": self.newly_flagged,
        }


class AnomalySweep:
    """スライディングウィンドウ方式の異常検知

    ウィンドウは常に実行時刻基準 [now - W, now) で再計算する。
    閾値未満のユーザーは変更しない（フラグ解除は管理者操作のみ）。
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        window_seconds: float = 900.0,
        threshold: int = 100,
        timeout_seconds: float = 5.0,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._session_factory = session_factory
        self._window = timedelta(seconds=window_seconds)
        self._threshold = threshold
        self._timeout_seconds = timeout_seconds
        self._clock = clock

    @property
    def window(self) -> timedelta:
        return self._window

    @property
    def threshold(self) -> int:
        return self._threshold

    async def run(self) -> SweepResult:
        """スイープを1回実行

        Raises:
            StorageUnavailableError: ストアに到達できない（次回実行で再評価）
        """
        now = self._clock()
        result = SweepResult(window_start=now - self._window, executed_at=now)
        started = time.monotonic()

        try:
            await run_with_timeout(self._evaluate(result), self._timeout_seconds)
        except StorageUnavailableError:
            anomaly_sweeps_total.labels(status="failure").inc()
            raise
        finally:
            anomaly_sweep_duration_seconds.observe(time.monotonic() - started)

        anomaly_sweeps_total.labels(status="success").inc()
        if result.newly_flagged:
            users_flagged_total.inc(len(result.newly_flagged))

        for user_id in result.newly_flagged:
            logger.warning(
                "ユーザーを監視対象に設定: user={}, action_count={}",
                user_id,
                result.suspicious_counts.get(user_id, 0),
            )
        logger.info(
            "異常検知スイープ完了",
            window_start=result.window_start.isoformat(),
            candidates=len(result.suspicious_counts),
            newly_flagged=len(result.newly_flagged),
        )
        return result

    async def _evaluate(self, result: SweepResult) -> None:
        async with session_scope(self._session_factory) as session:
            result.suspicious_counts = await AuditRecordRepository(session).count_by_user_since(
                result.window_start,
                min_count=self._threshold,
            )
            result.newly_flagged = await UserRepository(session).mark_monitored(result.suspicious_counts)
