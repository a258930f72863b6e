"""ActivityMonitor — 監査・異常検知・配信コンポーネントの所有者

プロセス起動時に1つ生成し、start()/stop() でライフサイクルを管理する。
"""

import random
from collections.abc import Callable
from datetime import datetime

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.analytics.activity import ActivityQueryService
from src.config.constants import ANOMALY_SWEEP_SCHEDULE, CATALOG_GENERATION_SCHEDULE
from src.config.settings import Settings
from src.db.base import utc_now
from src.fanout.catalog import ResourceCatalog
from src.fanout.generator import CatalogEntryFactory, GenerationLoop
from src.fanout.hub import FanoutHub
from src.security.audit_trail import AuditTrailService
from src.workflows.anomaly_sweep import AnomalySweep, SweepResult
from src.workflows.scheduler import PeriodicTask, ScheduleConfig, WorkflowScheduler


class ActivityMonitor:
    """コア機能一式を束ねるランタイム"""

    def __init__(
        self,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], datetime] = utc_now,
        rng: random.Random | None = None,
    ) -> None:
        self.settings = settings
        self.recorder = AuditTrailService(
            session_factory,
            timeout_seconds=settings.storage_timeout_seconds,
            clock=clock,
        )
        self.sweep = AnomalySweep(
            session_factory,
            window_seconds=settings.monitoring_window_seconds,
            threshold=settings.monitoring_threshold,
            timeout_seconds=settings.storage_timeout_seconds,
            clock=clock,
        )
        self.queries = ActivityQueryService(
            session_factory,
            window_seconds=settings.monitoring_window_seconds,
            recent_limit=settings.monitoring_recent_actions_limit,
            timeout_seconds=settings.storage_timeout_seconds,
            clock=clock,
        )
        self.entry_factory = CatalogEntryFactory(rng=rng)
        self.hub = FanoutHub(
            ResourceCatalog(),
            self.entry_factory,
            page_size_default=settings.fanout_page_size_default,
            page_size_max=settings.fanout_page_size_max,
            default_burst=settings.generation_default_burst,
            max_burst=settings.generation_max_burst,
            send_timeout_seconds=settings.fanout_send_timeout_seconds,
        )
        self.generation = GenerationLoop(self.hub)

        # 2つの定期タスクは互いに独立（共有状態なし、相互に直列化しない）
        self.scheduler = WorkflowScheduler(clock=clock)
        self.scheduler.register_schedule(
            ScheduleConfig(
                schedule_id=ANOMALY_SWEEP_SCHEDULE,
                interval_seconds=settings.monitoring_sweep_interval_seconds,
                description="異常検知スイープ",
            ),
            self.sweep.run,
        )
        self.scheduler.register_schedule(
            ScheduleConfig(
                schedule_id=CATALOG_GENERATION_SCHEDULE,
                interval_seconds=settings.generation_interval_seconds,
                timeout_seconds=settings.fanout_send_timeout_seconds * 2,
                description="カタログ定期生成",
            ),
            self.generation.tick,
        )
        self._started = False

    @property
    def is_started(self) -> bool:
        return self._started

    @property
    def sweep_task(self) -> PeriodicTask:
        return self._schedule(ANOMALY_SWEEP_SCHEDULE)

    @property
    def generation_task(self) -> PeriodicTask:
        return self._schedule(CATALOG_GENERATION_SCHEDULE)

    def _schedule(self, schedule_id: str) -> PeriodicTask:
        task = self.scheduler.get_schedule(schedule_id)
        if task is None:
            raise LookupError(f"スケジュール未登録: {schedule_id}")
        return task

    def seed_catalog(self, count: int) -> None:
        """起動時の初期エントリ（配信はしない）"""
        catalog = self.hub.catalog
        for _ in range(count):
            catalog.create(self.entry_factory)
        logger.info("初期カタログ生成完了: {}件", count)

    async def start(self) -> None:
        if self._started:
            return
        self.seed_catalog(self.settings.catalog_initial_size)
        self.scheduler.start_all()
        self._started = True
        logger.info("ActivityMonitor 起動")

    async def stop(self) -> None:
        if not self._started:
            return
        await self.scheduler.stop_all()
        await self.hub.close_all()
        self._started = False
        logger.info("ActivityMonitor 停止")

    async def run_sweep_now(self) -> SweepResult | None:
        """スイープを即時実行（実行中ならスキップして None）"""
        return await self.sweep_task.run_once()  # type: ignore[no-any-return]
