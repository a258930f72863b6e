"""非同期セッション管理 + ストレージ障害の境界"""

import asyncio
from collections.abc import AsyncIterator, Awaitable
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import TypeVar

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from src.db.base import Base
from src.db.engine import get_engine

T = TypeVar("T")

# ストレージ障害として扱う例外
STORAGE_EXCEPTIONS = (SQLAlchemyError, OSError)


class StorageUnavailableError(Exception):
    """監査ストアに到達できない（一時障害）"""


@lru_cache(maxsize=1)
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """セッションファクトリを返す"""
    return async_sessionmaker(
        bind=get_engine(),
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@asynccontextmanager
async def session_scope(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """バックグラウンド処理用のトランザクションスコープ"""
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except BaseException:
            await session.rollback()
            raise


async def run_with_timeout(operation: Awaitable[T], timeout: float) -> T:
    """ストア操作をタイムアウト付きで実行

    Raises:
        StorageUnavailableError: タイムアウトまたはDB/接続エラー
    """
    try:
        return await asyncio.wait_for(operation, timeout=timeout)
    except TimeoutError as e:
        raise StorageUnavailableError(f"ストア操作タイムアウト ({timeout}s)") from e
    except STORAGE_EXCEPTIONS as e:
        raise StorageUnavailableError(str(e)) from e


def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning("DB接続リトライ: attempt={}, error={}", retry_state.attempt_number, str(error))


async def init_models(
    engine: AsyncEngine | None = None,
    retries: int = 5,
    delay_seconds: float = 5.0,
) -> None:
    """テーブル作成（起動時、接続失敗はリトライ）"""
    import src.db.models  # noqa: F401  メタデータ登録

    engine = engine or get_engine()
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max(retries, 1)),
        wait=wait_fixed(delay_seconds),
        retry=retry_if_exception_type(STORAGE_EXCEPTIONS),
        before_sleep=_log_retry,
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
    logger.info("テーブル作成完了")
