"""監視エンドポイントテスト"""

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from src.db.models.audit_record import AuditRecord
from src.db.repositories.audit_record import AuditRecordRepository


async def _record(session_factory, user_id: int, count: int, at) -> None:
    async with session_factory() as session:
        repo = AuditRecordRepository(session)
        for i in range(count):
            await repo.append(user_id, "READ", "CPU", at + timedelta(milliseconds=i))
        await session.commit()


async def _record_count(session_factory) -> int:
    async with session_factory() as session:
        return (await session.execute(select(func.count(AuditRecord.id)))).scalar_one()


@pytest.mark.unit
class TestMonitoringAuth:
    async def test_requires_token(self, client) -> None:
        resp = await client.get("/api/v1/monitoring/users")
        assert resp.status_code in (401, 403)

    async def test_invalid_token(self, client) -> None:
        resp = await client.get("/api/v1/monitoring/users", headers={"Authorization": "Bearer garbage"})
        assert resp.status_code == 401

    async def test_non_admin_forbidden(self, client, member, bearer) -> None:
        resp = await client.get("/api/v1/monitoring/users", headers=bearer(member))
        assert resp.status_code == 403


@pytest.mark.unit
class TestMonitoringRoutes:
    async def test_list_monitored_users(self, client, admin, member, bearer, session_factory, clock) -> None:
        await _record(session_factory, member.id, 8, clock.now - timedelta(minutes=1))

        sweep = await client.post("/api/v1/monitoring/sweep", headers=bearer(admin))
        assert sweep.status_code == 200
        assert sweep.json()["executed"] is True
        assert sweep.json()["newly_flagged"] == [member.id]

        resp = await client.get("/api/v1/monitoring/users", headers=bearer(admin))
        assert resp.status_code == 200
        data = resp.json()
        assert len(data) == 1
        assert data[0]["username"] == "member"
        assert data[0]["flag_state"]["monitored"] is True
        assert len(data[0]["recent_actions"]) == 8

    async def test_user_activity(self, client, admin, member, bearer, session_factory, clock) -> None:
        await _record(session_factory, member.id, 3, clock.now - timedelta(minutes=1))

        resp = await client.get(f"/api/v1/monitoring/users/{member.id}/activity", headers=bearer(admin))
        assert resp.status_code == 200
        body = resp.json()
        assert body["window_seconds"] == 900
        assert body["stats"] == [{"action": "READ", "entity_type": "CPU", "count": 3}]

    async def test_user_activity_custom_window(self, client, admin, member, bearer, session_factory, clock) -> None:
        await _record(session_factory, member.id, 3, clock.now - timedelta(hours=1))

        resp = await client.get(
            f"/api/v1/monitoring/users/{member.id}/activity",
            params={"window_seconds": 7200},
            headers=bearer(admin),
        )
        assert resp.json()["stats"][0]["count"] == 3

    async def test_search_logs(self, client, admin, member, bearer, session_factory, clock) -> None:
        await _record(session_factory, member.id, 7, clock.now)

        resp = await client.get(
            "/api/v1/monitoring/logs",
            params={"username": "mem", "action": "read", "limit": 5},
            headers=bearer(admin),
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["total"] == 7
        assert body["total_pages"] == 2
        assert len(body["logs"]) == 5
        assert body["logs"][0]["email"] == "member@example.com"

    async def test_clear_monitored(self, client, admin, make_user, bearer) -> None:
        flagged = await make_user("flagged", is_monitored=True)

        resp = await client.post(f"/api/v1/monitoring/users/{flagged.id}/clear", headers=bearer(admin))
        assert resp.status_code == 200
        assert resp.json() == {"user_id": flagged.id, "cleared": True}

        listed = await client.get("/api/v1/monitoring/users", headers=bearer(admin))
        assert listed.json() == []

    async def test_clear_unknown_user(self, client, admin, bearer) -> None:
        resp = await client.post("/api/v1/monitoring/users/9999/clear", headers=bearer(admin))
        assert resp.status_code == 404

    async def test_monitoring_reads_are_not_audited(self, client, admin, bearer, session_factory) -> None:
        await client.get("/api/v1/monitoring/users", headers=bearer(admin))
        await client.get("/api/v1/monitoring/logs", headers=bearer(admin))
        assert await _record_count(session_factory) == 0

    async def test_monitor_not_started(self, test_app, client, admin, bearer) -> None:
        del test_app.state.monitor
        resp = await client.get("/api/v1/monitoring/users", headers=bearer(admin))
        assert resp.status_code == 503
