"""配信メッセージプロトコル — オブザーバーとの送受信スキーマ"""

from datetime import date
from typing import Annotated, Literal

from pydantic import BaseModel, Field, TypeAdapter

from src.config.constants import FanoutMessageType


class CatalogEntry(BaseModel):
    """カタログエントリ（新規作成リソースの射影）"""

    id: int
    cpu_model: str
    score: int
    nr_cores: int
    clock_speed: float
    manufacturing_date: date
    price_usd: int


# ── サーバー → オブザーバー ───────────────────────────
class InitialDataMessage(BaseModel):
    """接続直後のスナップショット"""

    type: Literal[FanoutMessageType.INITIAL_DATA] = FanoutMessageType.INITIAL_DATA
    data: list[CatalogEntry]
    total: int
    has_more: bool


class NewEntryMessage(BaseModel):
    """新規エントリ通知（全オブザーバー向け）"""

    type: Literal[FanoutMessageType.NEW_ENTRY] = FanoutMessageType.NEW_ENTRY
    entry: CatalogEntry


class ProgressMessage(BaseModel):
    """一括生成の進捗（要求元のみ）"""

    type: Literal[FanoutMessageType.PROGRESS] = FanoutMessageType.PROGRESS
    current: int
    total: int
    entry: CatalogEntry


class CompleteMessage(BaseModel):
    """一括生成の完了（要求元のみ）"""

    type: Literal[FanoutMessageType.COMPLETE] = FanoutMessageType.COMPLETE
    count: int
    message: str


class MoreDataMessage(BaseModel):
    """追加ページ（プル型）"""

    type: Literal[FanoutMessageType.MORE_DATA] = FanoutMessageType.MORE_DATA
    data: list[CatalogEntry]
    start: int
    total: int
    has_more: bool


class ErrorMessage(BaseModel):
    type: Literal[FanoutMessageType.ERROR] = FanoutMessageType.ERROR
    message: str


class PongMessage(BaseModel):
    type: Literal[FanoutMessageType.PONG] = FanoutMessageType.PONG


FanoutMessage = (
    InitialDataMessage
    | NewEntryMessage
    | ProgressMessage
    | CompleteMessage
    | MoreDataMessage
    | ErrorMessage
    | PongMessage
)


# ── オブザーバー → サーバー ───────────────────────────
class GenerateRequest(BaseModel):
    type: Literal["generate"]
    count: int | None = Field(default=None, ge=1)


class RequestMoreRequest(BaseModel):
    type: Literal["request_more"]
    start: int | None = Field(default=None, ge=0)
    limit: int | None = Field(default=None, ge=1)


class PingRequest(BaseModel):
    type: Literal["ping"]


ObserverRequest = Annotated[
    GenerateRequest | RequestMoreRequest | PingRequest,
    Field(discriminator="type"),
]

observer_request_adapter: TypeAdapter[GenerateRequest | RequestMoreRequest | PingRequest] = TypeAdapter(
    ObserverRequest
)
