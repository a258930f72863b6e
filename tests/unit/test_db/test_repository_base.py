"""BaseRepository テスト"""

import pytest

from src.db.repositories.user import UserRepository


@pytest.mark.unit
class TestBaseRepository:
    async def test_create_assigns_id_and_defaults(self, session_factory) -> None:
        async with session_factory() as session:
            repo = UserRepository(session)
            user = await repo.create(username="carol", email="carol@example.com", hashed_password="x")
            await session.commit()

            assert user.id is not None
            assert user.role == "user"
            assert user.is_monitored is False

        async with session_factory() as session:
            fetched = await UserRepository(session).get_by_username("carol")
            assert fetched is not None
            assert fetched.id == user.id

    async def test_count_with_filters(self, session_factory, make_user) -> None:
        await make_user("a", role="admin")
        await make_user("b")
        await make_user("c")
        async with session_factory() as session:
            repo = UserRepository(session)
            assert await repo.count() == 3
            assert await repo.count(role="user") == 2
            assert await repo.count(role=None) == 3
