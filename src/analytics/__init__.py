"""分析モジュール — 監視対象ユーザー・操作統計"""

from src.analytics.activity import ActivityQueryService

__all__ = [
    "ActivityQueryService",
]
