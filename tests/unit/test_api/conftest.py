"""API テスト共通フィクスチャ"""

import random
from collections.abc import AsyncGenerator
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from src.config.settings import Settings
from src.security.auth import AuthService
from src.workflows.runtime import ActivityMonitor


@pytest.fixture
def api_settings() -> Settings:
    return Settings(
        _env_file=None,
        app_env="testing",
        prometheus_enabled=False,
        catalog_initial_size=30,
        monitoring_threshold=5,
    )


@pytest.fixture
def auth_service(api_settings: Settings) -> AuthService:
    return AuthService(api_settings)


@pytest.fixture
def monitor(
    api_settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    clock: Any,
) -> ActivityMonitor:
    """スケジュール未開始のモニター（カタログのみ初期化）"""
    runtime = ActivityMonitor(api_settings, session_factory, clock=clock, rng=random.Random(0))
    runtime.seed_catalog(api_settings.catalog_initial_size)
    return runtime


@pytest.fixture
def test_app(api_settings: Settings, monitor: ActivityMonitor, engine: AsyncEngine, auth_service: AuthService) -> Any:
    """テスト用FastAPIアプリ（ライフサイクルを経由せず state を注入）"""
    from src.api.main import create_app
    from src.api.middleware.auth import get_auth_service

    app = create_app(api_settings)
    app.state.monitor = monitor
    app.state.engine = engine
    app.dependency_overrides[get_auth_service] = lambda: auth_service

    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def client(test_app: Any) -> AsyncGenerator[AsyncClient, None]:
    """テスト用HTTPクライアント"""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
async def admin(make_user: Any) -> Any:
    return await make_user("admin", role="admin")


@pytest.fixture
async def member(make_user: Any) -> Any:
    return await make_user("member", role="user")


@pytest.fixture
def bearer(auth_service: AuthService) -> Any:
    """ユーザーの Authorization ヘッダーを作るヘルパー"""

    def _headers(user: Any) -> dict[str, str]:
        return {"Authorization": f"Bearer {auth_service.create_access_token(user.id, user.role)}"}

    return _headers
