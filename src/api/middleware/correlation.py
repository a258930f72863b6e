"""相関IDミドルウェア — リクエスト追跡とアクセスログ"""

import time
import uuid

from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from src.monitoring.logging import correlation_id_var, user_id_var

CORRELATION_HEADER = "X-Correlation-ID"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """リクエストごとに相関IDを付与し、処理時間をログに残す

    ユーザーIDは認証依存性の中で設定され、リクエスト終了時に破棄される。
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        cid_token = correlation_id_var.set(correlation_id)
        uid_token = user_id_var.set("")
        started = time.monotonic()

        try:
            response = await call_next(request)
        finally:
            elapsed_ms = (time.monotonic() - started) * 1000
            correlation_id_var.reset(cid_token)
            user_id_var.reset(uid_token)

        response.headers[CORRELATION_HEADER] = correlation_id
        logger.debug(
            "{} {} -> {} ({:.1f}ms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            correlation_id=correlation_id,
        )
        return response
