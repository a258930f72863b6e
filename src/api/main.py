"""activity-monitor API エントリポイント

起動時に監査ストアを準備し、異常検知スイープとカタログ生成を開始する。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from prometheus_client import make_asgi_app

from src import __version__
from src.api.middleware.correlation import CorrelationIdMiddleware
from src.api.routes import catalog, health, monitoring, websocket
from src.config.settings import Settings, load_settings
from src.db.engine import get_engine
from src.db.session import get_session_factory, init_models
from src.monitoring.logging import setup_logging
from src.monitoring.metrics import app_info
from src.workflows.runtime import ActivityMonitor

API_PREFIX = "/api/v1"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings: Settings = app.state.settings
    setup_logging(
        level=settings.app_log_level,
        json_output=settings.is_production,
        log_dir=settings.app_log_dir,
    )
    app_info.info({"version": __version__, "environment": settings.app_env})
    logger.info("activity-monitor 起動", version=__version__, env=settings.app_env)

    # 監査ストアに届かなければリトライ後に起動失敗
    engine = get_engine()
    app.state.engine = engine
    if settings.database_auto_create:
        await init_models(
            engine,
            retries=settings.database_connect_retries,
            delay_seconds=settings.database_connect_retry_delay_seconds,
        )

    monitor = ActivityMonitor(settings, get_session_factory())
    app.state.monitor = monitor
    await monitor.start()
    try:
        yield
    finally:
        await monitor.stop()
        await engine.dispose()
        logger.info("activity-monitor 停止")


def _mount_routes(app: FastAPI, settings: Settings) -> None:
    app.include_router(health.router, prefix=API_PREFIX, tags=["health"])
    app.include_router(monitoring.router, prefix=f"{API_PREFIX}/monitoring", tags=["monitoring"])
    app.include_router(catalog.router, prefix=f"{API_PREFIX}/catalog", tags=["catalog"])
    app.include_router(websocket.router, prefix=API_PREFIX, tags=["websocket"])
    if settings.prometheus_enabled:
        app.mount("/metrics", make_asgi_app())


def create_app(settings: Settings | None = None) -> FastAPI:
    """アプリケーションファクトリ

    Raises:
        ConfigurationError: 設定値が不正（起動を中止）
    """
    settings = settings or load_settings()
    docs_enabled = settings.is_development

    app = FastAPI(
        title="activity-monitor API",
        description="操作監査・異常検知・カタログ配信",
        version=__version__,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationIdMiddleware)
    _mount_routes(app, settings)
    return app


app = create_app()


def run() -> None:
    """uvicorn で起動"""
    import uvicorn

    settings = load_settings()
    uvicorn.run(
        "src.api.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.is_development,
        log_level=settings.app_log_level.lower(),
    )
