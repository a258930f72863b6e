"""合成エントリ生成 — カタログ生成ループ"""

import random
from datetime import date, timedelta

from loguru import logger

from src.fanout.hub import FanoutHub
from src.fanout.protocol import CatalogEntry

_MANUFACTURER_SERIES = {
    "Intel": ["Core i3", "Core i5", "Core i7", "Core i9"],
    "AMD": ["Ryzen 3", "Ryzen 5", "Ryzen 7", "Ryzen 9"],
}
_GENERATIONS = ["11th", "12th", "13th", "14th"]


class CatalogEntryFactory:
    """ランダムなCPUカタログエントリを生成"""

    def __init__(self, rng: random.Random | None = None, today: date | None = None) -> None:
        self._rng = rng or random.Random()
        self._today = today

    def __call__(self, entry_id: int) -> CatalogEntry:
        rng = self._rng
        manufacturer = rng.choice(list(_MANUFACTURER_SERIES))
        series = rng.choice(_MANUFACTURER_SERIES[manufacturer])
        generation = rng.choice(_GENERATIONS)
        model_number = rng.randint(100, 999)
        today = self._today or date.today()

        return CatalogEntry(
            id=entry_id,
            cpu_model=f"{manufacturer} {series}-{generation} {model_number}",
            score=rng.randint(50, 99) * 100,
            nr_cores=rng.randint(4, 19),
            clock_speed=round(rng.uniform(2.0, 4.0), 1),
            manufacturing_date=today - timedelta(days=rng.randint(0, 3 * 365)),
            price_usd=rng.randint(100, 599),
        )


class GenerationLoop:
    """オブザーバー接続中のみ1件生成して配信する定期ジョブ"""

    def __init__(self, hub: FanoutHub) -> None:
        self._hub = hub

    async def tick(self) -> CatalogEntry | None:
        if not self._hub.has_observers:
            return None
        entry = await self._hub.publish_new_entry()
        logger.debug("定期生成エントリを配信: id={}", entry.id)
        return entry
