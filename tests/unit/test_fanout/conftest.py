"""配信テスト共通フィクスチャ"""

import random
from datetime import date

import pytest

from src.fanout.catalog import ResourceCatalog
from src.fanout.generator import CatalogEntryFactory
from src.fanout.hub import FanoutHub


@pytest.fixture
def entry_factory() -> CatalogEntryFactory:
    return CatalogEntryFactory(rng=random.Random(42), today=date(2026, 1, 15))


@pytest.fixture
def catalog() -> ResourceCatalog:
    return ResourceCatalog()


@pytest.fixture
def hub(catalog: ResourceCatalog, entry_factory: CatalogEntryFactory) -> FanoutHub:
    return FanoutHub(catalog, entry_factory, send_timeout_seconds=0.5)


@pytest.fixture
def seed(catalog: ResourceCatalog, entry_factory: CatalogEntryFactory):  # type: ignore[no-untyped-def]
    def _seed(count: int) -> None:
        for _ in range(count):
            catalog.create(entry_factory)

    return _seed
