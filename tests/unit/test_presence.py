import pytest
from datetime import datetime, timedelta
from httpx import AsyncClient
from fastapi import status
from sqlalchemy import select
from sqlalchemy.dialects import mysql

from app.models.users import User
from app.services import presence_service


async def reload_user(session, user_id: int) -> User:
    result = await session.execute(
        select(User).where(User.id == user_id).execution_options(populate_existing=True)
    )
    return result.scalar_one()


class TestPresenceService:
    """온라인 상태 서비스 테스트"""

    @pytest.mark.asyncio
    async def test_set_online_broadcasts(self, test_session, test_user_1, published_events):
        applied = await presence_service.set_status(test_session, test_user_1, True)

        assert applied is True
        assert test_user_1.is_online is True
        assert test_user_1.last_seen_at is not None

        frame = published_events[-1]
        assert frame["event"] == "UserStatusUpdated"
        assert frame["channel"] == "presence:users"
        assert set(frame["data"]["user"]) == {"id", "name", "is_online", "last_seen_at"}
        assert frame["data"]["user"]["is_online"] is True

    @pytest.mark.asyncio
    async def test_stale_update_is_ignored(self, test_session, test_user_1, published_events):
        """더 오래된 시각의 상태 변경은 최신 상태를 덮어쓰지 않음"""
        now = datetime.utcnow()
        await presence_service.set_status(test_session, test_user_1, True, at=now)

        applied = await presence_service.set_status(test_session, test_user_1, False, at=now - timedelta(seconds=30))

        assert applied is False
        user = await reload_user(test_session, test_user_1.id)
        assert user.is_online is True
        assert user.last_seen_at == now
        assert len(published_events) == 1

    def test_last_seen_at_keeps_microseconds_on_mysql(self):
        """초 단위 반올림으로 더 늦은 상태 변경이 무시되지 않도록 마이크로초까지 저장"""
        column_type = User.__table__.c.last_seen_at.type.dialect_impl(mysql.dialect())

        assert isinstance(column_type, mysql.DATETIME)
        assert column_type.fsp == 6

    @pytest.mark.asyncio
    async def test_unchanged_status_does_not_broadcast(self, test_session, test_user_1, published_events):
        await presence_service.set_status(test_session, test_user_1, True)
        await presence_service.set_status(test_session, test_user_1, True)

        assert len(published_events) == 1

    @pytest.mark.asyncio
    async def test_explicit_status_always_broadcasts(self, test_session, test_user_1, published_events):
        await presence_service.set_status(test_session, test_user_1, True)
        await presence_service.set_status(test_session, test_user_1, True, broadcast_always=True)

        assert len(published_events) == 2

    @pytest.mark.asyncio
    async def test_mark_online_only_when_offline(self, test_session, test_user_1, published_events):
        assert await presence_service.mark_online(test_session, test_user_1) is True
        assert await presence_service.mark_online(test_session, test_user_1) is False

    @pytest.mark.asyncio
    async def test_mark_offline(self, test_session, test_user_1, published_events):
        await presence_service.mark_online(test_session, test_user_1)

        await presence_service.mark_offline(test_session, test_user_1)

        user = await reload_user(test_session, test_user_1.id)
        assert user.is_online is False
        assert published_events[-1]["data"]["user"]["is_online"] is False


class TestUserAPI:
    """사용자 API 테스트"""

    @pytest.mark.asyncio
    async def test_list_users_excludes_self(self, client: AsyncClient, headers_user_1, test_user_2, test_user_3):
        response = await client.get("/users", headers=headers_user_1)

        assert response.status_code == status.HTTP_200_OK
        assert [user["name"] for user in response.json()] == ["Bob", "Carol"]

    @pytest.mark.asyncio
    async def test_search_users(self, client: AsyncClient, headers_user_1, test_user_2, test_user_3):
        response = await client.get("/users/search", params={"query": "car"}, headers=headers_user_1)

        assert response.status_code == status.HTTP_200_OK
        assert [user["email"] for user in response.json()] == ["carol@example.com"]

    @pytest.mark.asyncio
    async def test_search_query_too_short(self, client: AsyncClient, headers_user_1):
        response = await client.get("/users/search", params={"query": "a"}, headers=headers_user_1)

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.json()["code"] == "validation_error"

    @pytest.mark.asyncio
    async def test_update_status_offline(self, client: AsyncClient, headers_user_1, test_user_1, published_events):
        response = await client.post("/users/status", json={"is_online": False}, headers=headers_user_1)

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["is_online"] is False
        last = published_events[-1]
        assert last["event"] == "UserStatusUpdated"
        assert last["data"]["user"]["id"] == test_user_1.id
        assert last["data"]["user"]["is_online"] is False
