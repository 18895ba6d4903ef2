import pytest
from httpx import AsyncClient
from fastapi import status


async def register_and_login(client: AsyncClient, name: str, email: str) -> tuple:
    password = f"{name.lower()}pass123"
    response = await client.post("/auth/register", json={
        "name": name,
        "email": email,
        "password": password,
        "password_confirmation": password
    })
    assert response.status_code == status.HTTP_201_CREATED
    user = response.json()["user"]

    response = await client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == status.HTTP_200_OK
    return user, {"Authorization": f"Bearer {response.json()['token']}"}


class TestFullChatFlow:
    """전체 채팅 플로우 통합 테스트"""

    @pytest.mark.asyncio
    async def test_complete_chat_flow(self, client: AsyncClient, published_events):
        """
        완전한 채팅 플로우 테스트:
        1. 사용자 1, 2, 3 회원가입 및 로그인
        2. 사용자 1이 "General" 채팅방 생성
        3. 사용자 2가 메시지 전송 (2001자 거절, 2000자 허용)
        4. 사용자 3이 반응 추가
        5. 메시지 목록에서 반응 확인
        """

        # 1. 회원가입 및 로그인
        user_1, headers_1 = await register_and_login(client, "Alice", "alice@example.com")
        user_2, headers_2 = await register_and_login(client, "Bob", "bob@example.com")
        user_3, headers_3 = await register_and_login(client, "Carol", "carol@example.com")

        # 2. 채팅방 생성
        response = await client.post(
            "/rooms",
            json={"name": "General", "participants": [user_2["id"], user_3["id"]]},
            headers=headers_1
        )
        assert response.status_code == status.HTTP_201_CREATED
        room = response.json()
        roles = {p["user_id"]: p["role"] for p in room["participants"]}
        assert roles == {user_1["id"]: "owner", user_2["id"]: "member", user_3["id"]: "member"}

        # 3. 메시지 전송
        response = await client.post(
            f"/rooms/{room['id']}/messages",
            data={"message": "a" * 2001},
            headers=headers_2
        )
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

        response = await client.post(
            f"/rooms/{room['id']}/messages",
            data={"message": "a" * 2000},
            headers=headers_2
        )
        assert response.status_code == status.HTTP_201_CREATED

        response = await client.post(
            f"/rooms/{room['id']}/messages",
            data={"message": "hello"},
            headers=headers_2
        )
        assert response.status_code == status.HTTP_201_CREATED
        hello = response.json()

        # 4. 반응 추가
        response = await client.post(
            f"/messages/{hello['id']}/reactions",
            json={"reaction": "❤️"},
            headers=headers_3
        )
        assert response.status_code == status.HTTP_200_OK

        # 5. 메시지 목록 확인
        response = await client.get(f"/rooms/{room['id']}/messages", headers=headers_1)
        assert response.status_code == status.HTTP_200_OK
        messages = response.json()["messages"]
        assert len(messages) == 2
        assert messages[-1]["id"] == hello["id"]
        assert messages[-1]["reactions"] == {"❤️": [user_3["id"]]}

        room_events = [frame["event"] for frame in published_events if frame["channel"] == f"room:{room['id']}"]
        assert room_events == ["MessageSent", "MessageSent", "MessageReactionUpdated"]

    @pytest.mark.asyncio
    async def test_room_list_follows_activity(
        self, client: AsyncClient, test_user_1, test_user_2, headers_user_1, headers_user_2, published_events
    ):
        """메시지가 올라온 채팅방이 목록 맨 앞으로 이동"""
        first = await client.post("/rooms", json={"name": "First", "participants": [test_user_2.id]}, headers=headers_user_1)
        second = await client.post("/rooms", json={"name": "Second", "participants": [test_user_2.id]}, headers=headers_user_1)
        first_id, second_id = first.json()["id"], second.json()["id"]

        response = await client.get("/rooms", headers=headers_user_2)
        assert [r["id"] for r in response.json()] == [second_id, first_id]

        await client.post(f"/rooms/{first_id}/messages", data={"message": "bump"}, headers=headers_user_2)

        response = await client.get("/rooms", headers=headers_user_2)
        rooms = response.json()
        assert [r["id"] for r in rooms] == [first_id, second_id]
        assert rooms[0]["messages_count"] == 1
        assert rooms[0]["participants_count"] == 2

    @pytest.mark.asyncio
    async def test_websocket_room_status(self, client: AsyncClient, general_room, headers_user_2, headers_user_4):
        response = await client.get(f"/ws/rooms/{general_room.id}/status", headers=headers_user_2)

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["channel"] == f"room:{general_room.id}"
        assert response.json()["connected_users"] == []

        response = await client.get(f"/ws/rooms/{general_room.id}/status", headers=headers_user_4)
        assert response.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.asyncio
    async def test_liveness(self, client: AsyncClient):
        response = await client.get("/health/live")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "alive"
