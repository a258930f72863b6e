"""セッション管理・ストレージ障害境界テスト"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import OperationalError

from src.db.session import StorageUnavailableError, init_models, run_with_timeout


@pytest.mark.unit
class TestRunWithTimeout:
    async def test_returns_result(self) -> None:
        async def op() -> int:
            return 42

        assert await run_with_timeout(op(), timeout=1.0) == 42

    async def test_timeout_maps_to_storage_error(self) -> None:
        async def slow() -> None:
            await asyncio.sleep(10)

        with pytest.raises(StorageUnavailableError):
            await run_with_timeout(slow(), timeout=0.01)

    async def test_db_error_maps_to_storage_error(self) -> None:
        async def broken() -> None:
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))

        with pytest.raises(StorageUnavailableError):
            await run_with_timeout(broken(), timeout=1.0)

    async def test_other_errors_propagate(self) -> None:
        async def bug() -> None:
            raise KeyError("x")

        with pytest.raises(KeyError):
            await run_with_timeout(bug(), timeout=1.0)


@pytest.mark.unit
class TestInitModels:
    async def test_creates_tables(self, tmp_path) -> None:
        from sqlalchemy.ext.asyncio import create_async_engine

        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'init.db'}")
        try:
            await init_models(engine, retries=1, delay_seconds=0)
            async with engine.connect() as conn:
                tables = await conn.run_sync(lambda c: inspect(c).get_table_names())
        finally:
            await engine.dispose()
        assert {"users", "user_actions"} <= set(tables)

    async def test_retries_then_raises(self) -> None:
        engine = MagicMock()
        engine.begin = MagicMock(side_effect=OSError("connection refused"))

        with pytest.raises(OSError):
            await init_models(engine, retries=3, delay_seconds=0)
        assert engine.begin.call_count == 3

    async def test_recovers_after_transient_failure(self) -> None:
        conn = AsyncMock()
        ctx = MagicMock()
        ctx.__aenter__ = AsyncMock(return_value=conn)
        ctx.__aexit__ = AsyncMock(return_value=False)
        engine = MagicMock()
        engine.begin = MagicMock(side_effect=[OSError("refused"), ctx])

        await init_models(engine, retries=3, delay_seconds=0)
        assert engine.begin.call_count == 2
        conn.run_sync.assert_awaited_once()
