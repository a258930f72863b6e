"""共通テストフィクスチャ"""

import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

# テスト用に環境変数を設定
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("APP_DEBUG", "false")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-testing-only")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///test.db")
os.environ.setdefault("PROMETHEUS_ENABLED", "false")

from src.db.base import Base  # noqa: E402
from src.db.models.user import User  # noqa: E402


class FrozenClock:
    """テスト用の固定時計（advance で進める）"""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2026, 1, 15, 12, 0, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


# ── DBフィクスチャ（SQLite一時ファイル） ─────────────
@pytest.fixture
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    import src.db.models  # noqa: F401

    db_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield db_engine
    await db_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
def make_user(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[User]]:
    """ユーザーを作成するヘルパー"""

    async def _make(username: str = "alice", role: str = "user", **kwargs: Any) -> User:
        async with session_factory() as session:
            user = User(
                username=username,
                email=kwargs.pop("email", f"{username}@example.com"),
                hashed_password=kwargs.pop("hashed_password", "not-a-real-hash"),
                role=role,
                **kwargs,
            )
            session.add(user)
            await session.commit()
            return user

    return _make
