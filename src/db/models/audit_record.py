"""監査記録モデル — 操作ログ（Append-Only）"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from src.db.base import Base, BigIntPK, utc_now


class AuditRecord(Base):
    """監査記録（ユーザー操作ログ）

    成功した状態変更操作ごとに1行。更新・削除はしない。
    timestamp が唯一の順序・ウィンドウ判定キー。
    """

    __tablename__ = "user_actions"
    __table_args__ = (
        Index("idx_user_actions_user_timestamp", "user_id", "timestamp"),
        Index("idx_user_actions_composite", "user_id", "action", "timestamp"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(20), nullable=False)  # ActionKind
    entity_type: Mapped[str] = mapped_column(String(100), nullable=False)  # CPU, MANUFACTURER, FILE
    entity_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    details: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
        index=True,
    )
