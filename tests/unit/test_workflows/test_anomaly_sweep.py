"""異常検知スイープテスト"""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest

from src.db.repositories.audit_record import AuditRecordRepository
from src.db.repositories.user import UserRepository
from src.db.session import StorageUnavailableError
from src.workflows.anomaly_sweep import AnomalySweep


async def _record_actions(session_factory, user_id: int, count: int, at) -> None:
    async with session_factory() as session:
        repo = AuditRecordRepository(session)
        for i in range(count):
            await repo.append(user_id, "READ", "CPU", at + timedelta(milliseconds=i))
        await session.commit()


async def _monitored_ids(session_factory) -> set[int]:
    async with session_factory() as session:
        return {u.id for u in await UserRepository(session).list_monitored()}


@pytest.mark.unit
class TestAnomalySweep:
    async def test_flags_user_over_threshold(self, session_factory, make_user, clock) -> None:
        noisy = await make_user("noisy")
        quiet = await make_user("quiet")
        await _record_actions(session_factory, noisy.id, 150, clock.now - timedelta(minutes=10))
        await _record_actions(session_factory, quiet.id, 20, clock.now - timedelta(minutes=10))

        sweep = AnomalySweep(session_factory, window_seconds=900, threshold=100, clock=clock)
        result = await sweep.run()

        assert result.suspicious_counts == {noisy.id: 150}
        assert result.newly_flagged == [noisy.id]
        assert result.window_start == clock.now - timedelta(seconds=900)
        assert await _monitored_ids(session_factory) == {noisy.id}

    async def test_threshold_is_inclusive(self, session_factory, make_user, clock) -> None:
        user = await make_user()
        await _record_actions(session_factory, user.id, 100, clock.now - timedelta(minutes=1))

        result = await AnomalySweep(session_factory, threshold=100, clock=clock).run()
        assert result.newly_flagged == [user.id]

    async def test_records_outside_window_ignored(self, session_factory, make_user, clock) -> None:
        user = await make_user()
        await _record_actions(session_factory, user.id, 150, clock.now - timedelta(minutes=30))

        result = await AnomalySweep(session_factory, window_seconds=900, clock=clock).run()
        assert result.suspicious_counts == {}
        assert await _monitored_ids(session_factory) == set()

    async def test_idempotent_rerun(self, session_factory, make_user, clock) -> None:
        user = await make_user()
        await _record_actions(session_factory, user.id, 120, clock.now - timedelta(minutes=1))
        sweep = AnomalySweep(session_factory, clock=clock)

        first = await sweep.run()
        second = await sweep.run()

        assert first.newly_flagged == [user.id]
        assert second.newly_flagged == []
        assert second.suspicious_counts == {user.id: 120}

    async def test_flag_is_sticky(self, session_factory, make_user, clock) -> None:
        """ウィンドウから外れてもフラグは解除しない"""
        user = await make_user()
        await _record_actions(session_factory, user.id, 120, clock.now - timedelta(minutes=1))
        sweep = AnomalySweep(session_factory, clock=clock)
        await sweep.run()

        clock.advance(3600)
        result = await sweep.run()

        assert result.suspicious_counts == {}
        assert await _monitored_ids(session_factory) == {user.id}

    async def test_storage_failure_raises(self, session_factory, clock) -> None:
        sweep = AnomalySweep(session_factory, clock=clock)
        with (
            patch(
                "src.workflows.anomaly_sweep.AuditRecordRepository.count_by_user_since",
                new=AsyncMock(side_effect=OSError("connection reset")),
            ),
            pytest.raises(StorageUnavailableError),
        ):
            await sweep.run()

    def test_properties(self, session_factory) -> None:
        sweep = AnomalySweep(session_factory, window_seconds=60, threshold=5)
        assert sweep.window == timedelta(seconds=60)
        assert sweep.threshold == 5

    async def test_to_dict(self, session_factory, clock) -> None:
        result = await AnomalySweep(session_factory, clock=clock).run()
        data = result.to_dict()
        assert data["executed_at"] == clock.now.isoformat()
        assert data["newly_flagged"] == []
