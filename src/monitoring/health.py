"""ヘルスチェック — 監査ストアと定期タスクの状態確認

総合ステータスは構成要素のうち最も悪いものに従う。
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from loguru import logger
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from src import __version__
from src.workflows.scheduler import PeriodicTask

DB_PROBE_TIMEOUT_SECONDS = 3.0


class HealthStatus(StrEnum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {HealthStatus.HEALTHY: 0, HealthStatus.DEGRADED: 1, HealthStatus.UNHEALTHY: 2}


@dataclass
class ComponentHealth:
    name: str
    status: HealthStatus
    details: dict[str, Any] = field(default_factory=dict)
    latency_ms: float = 0.0

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status,
            "latency_ms": round(self.latency_ms, 2),
            "details": self.details,
        }


@dataclass
class SystemHealth:
    status: HealthStatus
    components: list[ComponentHealth]
    version: str = ""

    @classmethod
    def aggregate(cls, components: list[ComponentHealth]) -> "SystemHealth":
        worst = max((c.status for c in components), key=lambda s: s.severity, default=HealthStatus.HEALTHY)
        return cls(status=worst, components=components, version=__version__)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "version": self.version,
            "components": [c.as_dict() for c in self.components],
        }


class HealthChecker:
    """監査ストアへの疎通と定期タスクの進捗を検査"""

    def __init__(self, probe_timeout: float = DB_PROBE_TIMEOUT_SECONDS) -> None:
        self._probe_timeout = probe_timeout

    async def _probe(self, engine: AsyncEngine) -> None:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def check_database(self, engine: AsyncEngine) -> ComponentHealth:
        """監査ストア接続チェック（タイムアウトは unhealthy 扱い）"""
        started = time.monotonic()
        status = HealthStatus.HEALTHY
        details: dict[str, Any] = {"dialect": engine.dialect.name}
        try:
            await asyncio.wait_for(self._probe(engine), timeout=self._probe_timeout)
        except TimeoutError:
            status = HealthStatus.UNHEALTHY
            details = {"error": f"probe timed out after {self._probe_timeout}s"}
        except Exception as e:
            status = HealthStatus.UNHEALTHY
            details = {"error": str(e)}

        if status is HealthStatus.UNHEALTHY:
            logger.error("監査ストア疎通失敗", **details)
        return ComponentHealth(
            name="database",
            status=status,
            latency_ms=(time.monotonic() - started) * 1000,
            details=details,
        )

    def check_schedule(self, task: PeriodicTask, now: datetime | None = None) -> ComponentHealth:
        """定期タスクチェック — 直近失敗または2周期以上成功なしで degraded"""
        last_success = task.last_success_at
        details: dict[str, Any] = {
            "state": task.state,
            "interval_seconds": task.config.interval_seconds,
            "runs": task.run_count,
            "failures": task.failure_count,
            "skipped": task.skipped_count,
            "last_success_at": last_success.isoformat() if last_success else None,
        }
        if task.last_error:
            details["last_error"] = task.last_error

        ok = task.last_error is None and not task.is_stale(now)
        return ComponentHealth(
            name=f"schedule:{task.schedule_id}",
            status=HealthStatus.HEALTHY if ok else HealthStatus.DEGRADED,
            details=details,
        )

    async def check_all(
        self,
        engine: AsyncEngine | None = None,
        schedules: list[PeriodicTask] | None = None,
    ) -> SystemHealth:
        components = [self.check_schedule(task) for task in schedules or []]
        if engine is not None:
            components.insert(0, await self.check_database(engine))
        return SystemHealth.aggregate(components)
