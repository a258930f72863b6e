"""カタログスキーマ"""

from pydantic import BaseModel, Field

from src.fanout.protocol import CatalogEntry


class CatalogPageResponse(BaseModel):
    data: list[CatalogEntry]
    start: int
    total: int
    has_more: bool


class GenerateBody(BaseModel):
    count: int | None = Field(default=None, ge=1)


class GenerateResponse(BaseModel):
    count: int
    entries: list[CatalogEntry]
