"""ActivityMonitor ランタイムテスト"""

import random
from datetime import timedelta

import pytest

from src.config.constants import ANOMALY_SWEEP_SCHEDULE, CATALOG_GENERATION_SCHEDULE
from src.config.settings import Settings
from src.db.repositories.audit_record import AuditRecordRepository
from src.workflows.runtime import ActivityMonitor
from tests.fakes import RecordingTransport


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        catalog_initial_size=10,
        monitoring_threshold=3,
        monitoring_sweep_interval_seconds=3600,
        generation_interval_seconds=3600,
    )


@pytest.fixture
def runtime(settings, session_factory, clock) -> ActivityMonitor:
    return ActivityMonitor(settings, session_factory, clock=clock, rng=random.Random(0))


@pytest.mark.unit
class TestActivityMonitor:
    def test_schedules_registered(self, runtime) -> None:
        ids = {t.schedule_id for t in runtime.scheduler.list_schedules()}
        assert ids == {ANOMALY_SWEEP_SCHEDULE, CATALOG_GENERATION_SCHEDULE}
        assert runtime.sweep_task.config.interval_seconds == 3600
        assert runtime.sweep_task is runtime.scheduler.get_schedule(ANOMALY_SWEEP_SCHEDULE)
        assert runtime.generation_task is runtime.scheduler.get_schedule(CATALOG_GENERATION_SCHEDULE)

    async def test_start_seeds_and_stop_closes(self, runtime) -> None:
        await runtime.start()
        try:
            assert runtime.is_started
            assert len(runtime.hub.catalog) == 10
            assert runtime.sweep_task.is_started
            assert runtime.generation_task.is_started
            await runtime.hub.connect(RecordingTransport())
        finally:
            await runtime.stop()

        assert not runtime.is_started
        assert not runtime.sweep_task.is_started
        assert runtime.hub.observer_count == 0

    async def test_start_is_idempotent(self, runtime) -> None:
        await runtime.start()
        await runtime.start()
        try:
            assert len(runtime.hub.catalog) == 10
        finally:
            await runtime.stop()

    async def test_run_sweep_now(self, runtime, make_user, session_factory, clock) -> None:
        user = await make_user()
        async with session_factory() as session:
            repo = AuditRecordRepository(session)
            for i in range(3):
                await repo.append(user.id, "READ", "CPU", clock.now - timedelta(seconds=i + 1))
            await session.commit()

        result = await runtime.run_sweep_now()
        assert result is not None
        assert result.newly_flagged == [user.id]
        assert runtime.sweep_task.last_success_at == clock.now

    async def test_recorded_actions_feed_sweep(self, runtime, make_user) -> None:
        user = await make_user()
        for _ in range(3):
            assert await runtime.recorder.record(user.id, "POST", "CPU") is True

        result = await runtime.run_sweep_now()
        assert result.suspicious_counts == {user.id: 3}
        users = await runtime.queries.list_monitored_users()
        assert [u.user_id for u in users] == [user.id]
        assert all(a.action == "UNKNOWN" for a in users[0].recent_actions)
