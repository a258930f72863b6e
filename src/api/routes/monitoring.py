"""監視エンドポイント — 監視対象ユーザー・操作統計・操作ログ（管理者のみ）

ここでの参照は監査記録しない。
"""

from datetime import datetime, timedelta
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status

from src.api.dependencies import get_monitor
from src.api.middleware.auth import require_role
from src.api.schemas.monitoring import (
    ActionLogPageResponse,
    ActivityStatResponse,
    ClearMonitoredResponse,
    MonitoredUserResponse,
    SweepResponse,
    UserActivityResponse,
)
from src.config.constants import UserRole
from src.db.repositories.audit_record import AuditLogFilter
from src.db.session import StorageUnavailableError
from src.workflows.runtime import ActivityMonitor

router = APIRouter()


def _unavailable(e: StorageUnavailableError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=f"ストレージ利用不可: {e!s}",
    )


@router.get("/users", response_model=list[MonitoredUserResponse])
async def list_monitored_users(
    monitor: ActivityMonitor = Depends(get_monitor),
    user: Any = Depends(require_role(UserRole.ADMIN)),
) -> list[MonitoredUserResponse]:
    """監視対象ユーザー一覧"""
    try:
        users = await monitor.queries.list_monitored_users()
    except StorageUnavailableError as e:
        raise _unavailable(e) from e
    return [MonitoredUserResponse.model_validate(u) for u in users]


@router.get("/users/{user_id}/activity", response_model=UserActivityResponse)
async def get_user_activity(
    user_id: int,
    window_seconds: float | None = Query(default=None, gt=0),
    monitor: ActivityMonitor = Depends(get_monitor),
    user: Any = Depends(require_role(UserRole.ADMIN)),
) -> UserActivityResponse:
    """ユーザーの直近操作統計"""
    window = timedelta(seconds=window_seconds) if window_seconds else None
    try:
        stats = await monitor.queries.get_user_activity_stats(user_id, window)
    except StorageUnavailableError as e:
        raise _unavailable(e) from e
    return UserActivityResponse(
        user_id=user_id,
        window_seconds=window_seconds or monitor.settings.monitoring_window_seconds,
        stats=[ActivityStatResponse.model_validate(s) for s in stats],
    )


@router.get("/logs", response_model=ActionLogPageResponse)
async def search_logs(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=500),
    user_id: int | None = None,
    username: str | None = None,
    action: str | None = None,
    entity_type: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    monitor: ActivityMonitor = Depends(get_monitor),
    user: Any = Depends(require_role(UserRole.ADMIN)),
) -> ActionLogPageResponse:
    """操作ログ検索"""
    filters = AuditLogFilter(
        user_id=user_id,
        username=username,
        action=action.upper() if action else None,
        entity_type=entity_type,
        start=start,
        end=end,
    )
    try:
        result = await monitor.queries.search_logs(filters, page=page, limit=limit)
    except StorageUnavailableError as e:
        raise _unavailable(e) from e
    return ActionLogPageResponse.model_validate(result)


@router.post("/users/{user_id}/clear", response_model=ClearMonitoredResponse)
async def clear_monitored(
    user_id: int,
    monitor: ActivityMonitor = Depends(get_monitor),
    user: Any = Depends(require_role(UserRole.ADMIN)),
) -> ClearMonitoredResponse:
    """監視フラグの手動解除"""
    try:
        cleared = await monitor.queries.clear_monitored(user_id)
    except StorageUnavailableError as e:
        raise _unavailable(e) from e
    if not cleared:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"ユーザーが見つかりません: {user_id}",
        )
    return ClearMonitoredResponse(user_id=user_id, cleared=True)


@router.post("/sweep", response_model=SweepResponse)
async def run_sweep(
    monitor: ActivityMonitor = Depends(get_monitor),
    user: Any = Depends(require_role(UserRole.ADMIN)),
) -> SweepResponse:
    """異常検知スイープを即時実行（実行中・失敗時は executed=false）"""
    result = await monitor.run_sweep_now()
    if result is None:
        return SweepResponse(executed=False, error=monitor.sweep_task.last_error)
    return SweepResponse(
        executed=True,
        window_start=result.window_start,
        executed_at=result.executed_at,
        suspicious_counts=result.suspicious_counts,
        newly_flagged=result.newly_flagged,
    )
