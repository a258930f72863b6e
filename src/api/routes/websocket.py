"""WebSocket エンドポイント — カタログのライブ配信

接続直後にカタログ先頭ページのスナップショット（initial_data）を受信し、
以降は新規エントリ（new_entry）がプッシュされる。

メッセージ形式:
送信: {"type": "generate", "count": 5}
     {"type": "request_more", "start": 25, "limit": 25}
     {"type": "ping"}
受信: {"type": "initial_data", "data": [...], "total": 100, "has_more": true}
     {"type": "new_entry", "entry": {...}}
     {"type": "progress", "current": 1, "total": 5, "entry": {...}}
     {"type": "complete", "count": 5, "message": "..."}
     {"type": "more_data", "data": [...], "start": 25, "total": 100, "has_more": true}
     {"type": "error", "message": "..."}
     {"type": "pong"}
"""

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from loguru import logger
from pydantic import ValidationError

from src.api.dependencies import get_current_user_ws, get_ws_monitor
from src.fanout.hub import DeliveryFailureError, FanoutHub, ObserverConnection
from src.fanout.protocol import (
    ErrorMessage,
    GenerateRequest,
    MoreDataMessage,
    PingRequest,
    PongMessage,
    RequestMoreRequest,
    observer_request_adapter,
)

router = APIRouter()


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """オブザーバー接続エンドポイント（トークンはクエリパラメータ）"""
    token = websocket.query_params.get("token", "")
    user = get_current_user_ws(token)
    if user is None:
        await websocket.close(code=4001, reason="認証エラー")
        return

    monitor = get_ws_monitor(websocket)
    if monitor is None:
        await websocket.close(code=1013, reason="モニター未起動")
        return

    await websocket.accept()
    hub = monitor.hub
    try:
        connection = await hub.connect(websocket)
    except DeliveryFailureError as e:
        logger.warning("初期データ送信失敗: {}", e.reason)
        return

    logger.info("WebSocket接続: user={}, connection={}", user.user_id, connection.id)
    try:
        while not connection.closed:
            raw_data = await websocket.receive_text()
            await _handle_message(hub, connection, raw_data)
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error("WebSocketエラー: {}", str(e))
    finally:
        await hub.disconnect(connection)
        logger.info("WebSocket切断: user={}, connection={}", user.user_id, connection.id)


async def _handle_message(hub: FanoutHub, connection: ObserverConnection, raw_data: str) -> None:
    """クライアントメッセージ1件を処理（不正な入力は error を返して接続維持）"""
    try:
        request = observer_request_adapter.validate_json(raw_data)
    except ValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        await hub.send_to(connection, ErrorMessage(message=f"不正なメッセージ: {first.get('msg', 'invalid')}"))
        return

    if isinstance(request, PingRequest):
        await hub.send_to(connection, PongMessage())

    elif isinstance(request, RequestMoreRequest):
        page = hub.request_more(connection, start=request.start, limit=request.limit)
        await hub.send_to(
            connection,
            MoreDataMessage(
                data=page.entries,
                start=page.start,
                total=page.total,
                has_more=page.has_more,
            ),
        )

    elif isinstance(request, GenerateRequest):
        await hub.generate(request.count, requester=connection)
