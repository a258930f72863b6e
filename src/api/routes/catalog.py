"""カタログエンドポイント — ページ取得・一括生成（監査対象）"""

from typing import Any

from fastapi import APIRouter, Depends, Query

from src.api.audit_hook import AuditHook, audit_hook
from src.api.dependencies import get_monitor
from src.api.schemas.catalog import CatalogPageResponse, GenerateBody, GenerateResponse
from src.config.constants import EntityType
from src.workflows.runtime import ActivityMonitor

router = APIRouter()


@router.get("", response_model=CatalogPageResponse)
async def list_catalog(
    start: int = Query(default=0, ge=0),
    limit: int | None = Query(default=None, ge=1),
    monitor: ActivityMonitor = Depends(get_monitor),
    audit: AuditHook = Depends(audit_hook(EntityType.CPU)),
) -> CatalogPageResponse:
    """カタログのページ取得"""
    settings = monitor.settings
    size = min(limit or settings.fanout_page_size_default, settings.fanout_page_size_max)
    page = monitor.hub.catalog.page(start, size)

    audit.commit(details={"start": page.start, "limit": size})
    return CatalogPageResponse(
        data=page.entries,
        start=page.start,
        total=page.total,
        has_more=page.has_more,
    )


@router.post("/generate", response_model=GenerateResponse)
async def generate_entries(
    body: GenerateBody | None = None,
    monitor: ActivityMonitor = Depends(get_monitor),
    audit: AuditHook = Depends(audit_hook(EntityType.CPU)),
) -> GenerateResponse:
    """エントリを一括生成し接続中のオブザーバーに配信"""
    entries = await monitor.hub.generate(body.count if body else None)

    details: dict[str, Any] = {"count": len(entries)}
    audit.commit(entity_id=entries[-1].id if entries else None, details=details)
    return GenerateResponse(count=len(entries), entries=entries)
