"""activity-monitor データベース初期化スクリプト.

監査ストアのテーブル（users, user_actions）とインデックスを作成する。
接続失敗時は設定に従ってリトライする。

使用方法:
    python -m infrastructure.scripts.init_db
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

# プロジェクトルートをパスに追加
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from sqlalchemy import inspect

from src.config.settings import load_settings
from src.db.engine import get_engine
from src.db.session import init_models


async def verify_tables(engine) -> list[str]:  # type: ignore[no-untyped-def]
    """作成済みテーブルを確認."""
    async with engine.connect() as conn:
        tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
    for table in ("users", "user_actions"):
        mark = "OK" if table in tables else "MISSING"
        print(f"[{mark}] Table '{table}'")
    return list(tables)


async def main() -> None:
    """メイン実行."""
    settings = load_settings()
    engine = get_engine()

    try:
        print("=== activity-monitor Database Initialization ===")
        await init_models(
            engine,
            retries=settings.database_connect_retries,
            delay_seconds=settings.database_connect_retry_delay_seconds,
        )
        await verify_tables(engine)
        print("=== Initialization Complete ===")
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
