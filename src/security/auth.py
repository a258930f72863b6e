"""JWT認証 — 監視API・WebSocket 観測者の呼び出し元識別

パスワードは bcrypt、トークンは HS256 の短命アクセストークンのみ。
"""

import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from loguru import logger
from passlib.context import CryptContext
from pydantic import BaseModel

from src.config.settings import Settings, get_settings

ACCESS_TOKEN_TYPE = "access"


class TokenPayload(BaseModel):
    """検証済みトークンのクレーム"""

    sub: str  # 監査対象ユーザーID（文字列化）
    role: str
    exp: datetime
    iat: datetime
    jti: str
    token_type: str

    @property
    def user_id(self) -> int:
        return int(self.sub)


class AuthService:
    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._hasher = CryptContext(schemes=["bcrypt"], deprecated="auto")

    # ── パスワード ────────────────────────────────────
    def hash_password(self, password: str) -> str:
        return self._hasher.hash(password)  # type: ignore[no-any-return]

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        return self._hasher.verify(plain_password, hashed_password)  # type: ignore[no-any-return]

    # ── トークン ──────────────────────────────────────
    def _claims(self, user_id: int, role: str, token_type: str) -> dict[str, Any]:
        issued_at = datetime.now(UTC)
        lifetime = timedelta(minutes=self._settings.jwt_access_token_expire_minutes)
        return {
            "sub": str(user_id),
            "role": role,
            "iat": issued_at,
            "exp": issued_at + lifetime,
            "jti": uuid.uuid4().hex,
            "token_type": token_type,
        }

    def create_access_token(self, user_id: int, role: str) -> str:
        """ユーザーIDとロールを載せたアクセストークンを発行"""
        claims = self._claims(user_id, role, ACCESS_TOKEN_TYPE)
        logger.info("アクセストークン発行", user_id=user_id, role=role, jti=claims["jti"])
        return jwt.encode(claims, self._settings.jwt_secret_key, algorithm=self._settings.jwt_algorithm)

    def verify_token(self, token: str, expected_type: str = ACCESS_TOKEN_TYPE) -> TokenPayload:
        """署名・有効期限・種別を検証してクレームを返す

        Raises:
            jwt.ExpiredSignatureError: 有効期限切れ
            jwt.InvalidTokenError: 署名不正・形式不正
            ValueError: トークン種別の不一致
        """
        claims: dict[str, Any] = jwt.decode(
            token,
            self._settings.jwt_secret_key,
            algorithms=[self._settings.jwt_algorithm],
        )
        actual_type = claims.get("token_type")
        if actual_type != expected_type:
            raise ValueError(f"token type mismatch: expected {expected_type!r}, got {actual_type!r}")
        # exp / iat は UNIX 秒で届くので pydantic に datetime へ変換させる
        return TokenPayload.model_validate(claims)
