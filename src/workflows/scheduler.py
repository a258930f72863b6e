"""ワークフロースケジューラ — asyncio 定期タスク管理"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any

from loguru import logger

from src.db.base import utc_now
from src.monitoring.metrics import scheduled_task_runs_total


class ScheduleState(StrEnum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass
class ScheduleConfig:
    """スケジュール設定"""

    schedule_id: str
    interval_seconds: float
    timeout_seconds: float | None = None
    description: str = ""


class PeriodicTask:
    """固定間隔で実行される単一実行（single-flight）タスク

    前回の実行が終わっていなければ次の実行はスキップする。
    ジョブの例外はログに残し、ループは継続する。
    """

    def __init__(
        self,
        config: ScheduleConfig,
        job: Callable[[], Awaitable[Any]],
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.config = config
        self._job = job
        self._clock = clock
        self._lock = asyncio.Lock()
        self._task: asyncio.Task[None] | None = None

        self.run_count = 0
        self.failure_count = 0
        self.skipped_count = 0
        self.last_started_at: datetime | None = None
        self.last_success_at: datetime | None = None
        self.last_error: str | None = None

    @property
    def schedule_id(self) -> str:
        return self.config.schedule_id

    @property
    def state(self) -> ScheduleState:
        if self._lock.locked():
            return ScheduleState.RUNNING
        if self.is_started:
            return ScheduleState.IDLE
        return ScheduleState.STOPPED

    @property
    def is_started(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> Any:
        """ジョブを1回実行

        Returns:
            ジョブの戻り値。実行中スキップ・失敗時は None
        """
        if self._lock.locked():
            self.skipped_count += 1
            scheduled_task_runs_total.labels(schedule=self.schedule_id, status="skipped").inc()
            logger.info("前回実行中のためスキップ: {}", self.schedule_id)
            return None

        async with self._lock:
            self.run_count += 1
            self.last_started_at = self._clock()
            try:
                if self.config.timeout_seconds is not None:
                    result = await asyncio.wait_for(self._job(), timeout=self.config.timeout_seconds)
                else:
                    result = await self._job()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.failure_count += 1
                self.last_error = f"{type(e).__name__}: {e}"
                scheduled_task_runs_total.labels(schedule=self.schedule_id, status="failure").inc()
                logger.error("定期タスク失敗: {}: {}", self.schedule_id, self.last_error)
                return None

            self.last_success_at = self._clock()
            self.last_error = None
            scheduled_task_runs_total.labels(schedule=self.schedule_id, status="success").inc()
            return result

    def start(self) -> None:
        """バックグラウンドループ開始"""
        if self.is_started:
            return
        self._task = asyncio.create_task(self._loop(), name=f"schedule:{self.schedule_id}")
        logger.info(
            "スケジュール開始: id={}, interval={}s",
            self.schedule_id,
            self.config.interval_seconds,
        )

    async def stop(self) -> None:
        """バックグラウンドループ停止（実行中のジョブもキャンセル）"""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("スケジュール停止: {}", self.schedule_id)

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.interval_seconds)
            await self.run_once()

    def is_stale(self, now: datetime | None = None) -> bool:
        """2周期以上成功していないか"""
        now = now or self._clock()
        reference = self.last_success_at or self.last_started_at
        if reference is None:
            return False
        return (now - reference).total_seconds() > self.config.interval_seconds * 2


class WorkflowScheduler:
    """定期タスクのレジストリ

    異常検知スイープ・カタログ生成ループなど、互いに独立した
    定期タスクをまとめて開始・停止する。
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._schedules: dict[str, PeriodicTask] = {}
        self._clock = clock

    def register_schedule(
        self,
        config: ScheduleConfig,
        job: Callable[[], Awaitable[Any]],
    ) -> PeriodicTask:
        """スケジュールを登録"""
        if config.schedule_id in self._schedules:
            raise ValueError(f"スケジュール登録済み: {config.schedule_id}")
        task = PeriodicTask(config, job, clock=self._clock)
        self._schedules[config.schedule_id] = task
        logger.info(
            "スケジュール登録: id={}, interval={}s",
            config.schedule_id,
            config.interval_seconds,
        )
        return task

    def get_schedule(self, schedule_id: str) -> PeriodicTask | None:
        """スケジュールを取得"""
        return self._schedules.get(schedule_id)

    def list_schedules(self) -> list[PeriodicTask]:
        """スケジュール一覧を取得"""
        return list(self._schedules.values())

    def start_all(self) -> None:
        """登録済みスケジュールを全て開始"""
        for task in self._schedules.values():
            task.start()

    async def stop_all(self) -> None:
        """全スケジュールを停止"""
        for task in self._schedules.values():
            await task.stop()
