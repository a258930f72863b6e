"""FastAPI 依存性注入"""

from fastapi import HTTPException, Request, WebSocket, status
from loguru import logger

from src.security.auth import AuthService, TokenPayload
from src.workflows.runtime import ActivityMonitor


def get_monitor(request: Request) -> ActivityMonitor:
    """起動済みの ActivityMonitor を取得"""
    monitor: ActivityMonitor | None = getattr(request.app.state, "monitor", None)
    if monitor is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="モニター未起動",
        )
    return monitor


def get_ws_monitor(websocket: WebSocket) -> ActivityMonitor | None:
    """WebSocket用 ActivityMonitor 取得"""
    return getattr(websocket.app.state, "monitor", None)


def get_current_user_ws(token: str) -> TokenPayload | None:
    """WebSocket用トークン検証"""
    if not token:
        return None
    try:
        return AuthService().verify_token(token)
    except Exception as e:
        logger.debug("WebSocket認証エラー: {}", str(e))
        return None
