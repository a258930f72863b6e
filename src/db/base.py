"""SQLAlchemy Base model + 共通Mixin"""

from datetime import UTC, datetime

from sqlalchemy import BigInteger, DateTime, Integer
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# SQLiteはINTEGER PRIMARY KEYのみ自動採番するためバリアントを指定
BigIntPK = BigInteger().with_variant(Integer(), "sqlite")


def utc_now() -> datetime:
    """現在時刻（UTC, aware）"""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """全モデルの基底クラス"""

    pass


class TimestampMixin:
    """作成日時・更新日時の共通Mixin"""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        onupdate=utc_now,
        nullable=False,
    )


class BaseModel(Base, TimestampMixin):
    """自動採番主キー + タイムスタンプを持つ標準基底モデル"""

    __abstract__ = True

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
