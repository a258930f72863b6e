"""SQLAlchemy async engine — コネクションプール管理"""

from functools import lru_cache
from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from src.config.settings import get_settings


@lru_cache(maxsize=1)
def get_engine() -> AsyncEngine:
    """AsyncEngineシングルトンを返す"""
    settings = get_settings()

    options: dict[str, Any] = {
        "pool_pre_ping": True,
        "echo": settings.app_debug and settings.is_development,
    }
    # SQLite（テスト・ローカル）ではプール設定を渡さない
    if not settings.is_sqlite:
        options.update(
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_recycle=3600,
        )

    return create_async_engine(settings.database_url, **options)
