"""ヘルスチェックエンドポイント"""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from src import __version__
from src.db.engine import get_engine
from src.monitoring.health import HealthChecker, HealthStatus

router = APIRouter()
_checker = HealthChecker()


async def _respond(request: Request, failing: set[HealthStatus]) -> JSONResponse:
    monitor = getattr(request.app.state, "monitor", None)
    engine = getattr(request.app.state, "engine", None) or get_engine()
    result = await _checker.check_all(
        engine=engine,
        schedules=monitor.scheduler.list_schedules() if monitor is not None else [],
    )
    return JSONResponse(
        status_code=503 if result.status in failing else 200,
        content=result.to_dict(),
    )


@router.get("/health")
async def health_check(request: Request) -> JSONResponse:
    """総合ヘルスチェック（degraded でも 503）"""
    return await _respond(request, {HealthStatus.DEGRADED, HealthStatus.UNHEALTHY})


@router.get("/health/ready")
async def readiness_check(request: Request) -> JSONResponse:
    """Readinessプローブ — 監査ストアに到達できなければ 503"""
    return await _respond(request, {HealthStatus.UNHEALTHY})


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    return {"status": "alive", "version": __version__}
