"""リアルタイム配信 — 新規リソースのオブザーバーへのファンアウト"""

from src.fanout.catalog import CatalogPage, ResourceCatalog
from src.fanout.generator import CatalogEntryFactory, GenerationLoop
from src.fanout.hub import DeliveryFailureError, FanoutHub, ObserverConnection

__all__ = [
    "CatalogEntryFactory",
    "CatalogPage",
    "DeliveryFailureError",
    "FanoutHub",
    "GenerationLoop",
    "ObserverConnection",
    "ResourceCatalog",
]
