"""リソースカタログ — 配信対象のインメモリ順序付き集合"""

from collections.abc import Callable
from dataclasses import dataclass

from src.fanout.protocol import CatalogEntry
from src.monitoring.metrics import catalog_entries


@dataclass
class CatalogPage:
    """カタログの1ページ"""

    entries: list[CatalogEntry]
    start: int
    total: int
    has_more: bool


class ResourceCatalog:
    """作成順に並んだリソース集合

    IDは単調増加。追加と採番は await を挟まずに行うため
    イベントループ上では不可分。
    """

    def __init__(self) -> None:
        self._entries: list[CatalogEntry] = []
        self._next_id = 1

    def __len__(self) -> int:
        return len(self._entries)

    def create(self, build: Callable[[int], CatalogEntry]) -> CatalogEntry:
        """次のIDでエントリを生成して追加"""
        entry = build(self._next_id)
        return self.append(entry)

    def append(self, entry: CatalogEntry) -> CatalogEntry:
        """エントリを末尾に追加"""
        self._entries.append(entry)
        self._next_id = max(self._next_id, entry.id + 1)
        catalog_entries.set(len(self._entries))
        return entry

    def page(self, start: int, limit: int) -> CatalogPage:
        """start位置からlimit件"""
        start = max(start, 0)
        limit = max(limit, 0)
        total = len(self._entries)
        return CatalogPage(
            entries=self._entries[start : start + limit],
            start=start,
            total=total,
            has_more=start + limit < total,
        )

    def snapshot(self) -> list[CatalogEntry]:
        """全エントリのコピー"""
        return list(self._entries)
