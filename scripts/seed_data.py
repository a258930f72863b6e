"""activity-monitor テストデータ投入スクリプト.

開発環境用のユーザー（admin / user）を投入し、アクセストークンを表示する。
--burst を指定すると一般ユーザーの操作を記録した上でスイープを1回実行する。

使用方法:
    python scripts/seed_data.py
    python scripts/seed_data.py --burst 150
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config.constants import ActionKind, EntityType, UserRole
from src.config.settings import load_settings
from src.db.engine import get_engine
from src.db.models.user import User
from src.db.repositories.user import UserRepository
from src.db.session import get_session_factory, init_models
from src.security.audit_trail import AuditTrailService
from src.security.auth import AuthService
from src.workflows.anomaly_sweep import AnomalySweep

SEED_USERS = {
    "admin": {"email": "admin@example.com", "role": UserRole.ADMIN},
    "user": {"email": "user@example.com", "role": UserRole.USER},
}
SEED_PASSWORD = "password123"  # noqa: S105


async def seed_users(
    session_factory: async_sessionmaker[AsyncSession],
    auth: AuthService,
) -> dict[str, User]:
    """ユーザーデータを投入（既存ユーザーはそのまま）."""
    users: dict[str, User] = {}
    async with session_factory() as session:
        repo = UserRepository(session)
        for username, data in SEED_USERS.items():
            user = await repo.get_by_username(username)
            if user is None:
                user = await repo.create(
                    username=username,
                    email=data["email"],
                    hashed_password=auth.hash_password(SEED_PASSWORD),
                    role=data["role"],
                )
            users[username] = user
        await session.commit()
        total = await repo.count()

    print(f"[OK] Users: {', '.join(f'{k}(id={v.id})' for k, v in users.items())} (total={total})")
    return users


async def simulate_burst(
    session_factory: async_sessionmaker[AsyncSession],
    user: User,
    count: int,
) -> None:
    """一般ユーザーの操作を count 件記録."""
    recorder = AuditTrailService(session_factory)
    recorded = 0
    for i in range(count):
        if await recorder.record(user.id, ActionKind.READ, EntityType.CPU, entity_id=i + 1):
            recorded += 1
    print(f"[OK] Recorded {recorded}/{count} actions for '{user.username}'")


async def main() -> None:
    """メイン実行."""
    parser = argparse.ArgumentParser(description="開発用データ投入")
    parser.add_argument("--burst", type=int, default=0, help="一般ユーザーの操作を記録する件数")
    args = parser.parse_args()

    settings = load_settings()
    engine = get_engine()
    session_factory = get_session_factory()
    auth = AuthService(settings)

    try:
        print("=== Seeding Development Data ===")
        await init_models(
            engine,
            retries=settings.database_connect_retries,
            delay_seconds=settings.database_connect_retry_delay_seconds,
        )
        users = await seed_users(session_factory, auth)

        for username, user in users.items():
            print(f"[TOKEN] {username}: {auth.create_access_token(user.id, user.role)}")

        if args.burst > 0:
            await simulate_burst(session_factory, users["user"], args.burst)
            sweep = AnomalySweep(
                session_factory,
                window_seconds=settings.monitoring_window_seconds,
                threshold=settings.monitoring_threshold,
            )
            result = await sweep.run()
            print(f"[OK] Sweep: newly_flagged={result.newly_flagged}")
            async with session_factory() as session:
                monitored = await UserRepository(session).count(is_monitored=True)
            print(f"[OK] Monitored users: {monitored}")

        print("=== Seed Complete ===")
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
