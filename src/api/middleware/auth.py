"""JWT認証依存性 — Bearer トークンからの呼び出し元解決とロール制御"""

from collections.abc import Awaitable, Callable

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.monitoring.logging import user_id_var
from src.security.auth import AuthService, TokenPayload

security = HTTPBearer()


def get_auth_service() -> AuthService:
    return AuthService()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    auth_service: AuthService = Depends(get_auth_service),
) -> TokenPayload:
    """トークンを検証し、以降のログにユーザーIDを載せる"""
    try:
        payload = auth_service.verify_token(credentials.credentials)
    except (jwt.InvalidTokenError, ValueError) as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"認証エラー: {e!s}",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e
    user_id_var.set(payload.sub)
    return payload


def require_role(*roles: str) -> Callable[..., Awaitable[TokenPayload]]:
    """指定ロールのいずれかを要求する依存性を生成"""
    allowed = frozenset(roles)

    async def _check(user: TokenPayload = Depends(get_current_user)) -> TokenPayload:
        if user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"権限不足: {', '.join(sorted(allowed))}",
            )
        return user

    return _check
