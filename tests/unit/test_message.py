import pytest
from httpx import AsyncClient
from fastapi import status

from app.core.errors import AuthorizationException, ResourceNotFoundException, ValidationException
from app.services import message_service


class TestMessageService:
    """메시지 서비스 테스트"""

    @pytest.mark.asyncio
    async def test_post_message(self, test_session, general_room, test_user_2, published_events):
        message = await message_service.post_message(test_session, general_room.id, test_user_2, "hello")

        assert message.message == "hello"
        assert message.reactions == {}
        assert message.is_edited is False

        frame = published_events[-1]
        assert frame["event"] == "MessageSent"
        assert frame["channel"] == f"room:{general_room.id}"
        assert frame["data"]["message"]["id"] == message.id
        assert frame["data"]["message"]["user"]["name"] == "Bob"
        assert frame["data"]["sender"] == {
            "id": test_user_2.id,
            "name": "Bob",
            "avatar": None,
            "email": "bob@example.com",
            "online_status": "offline",
        }

    @pytest.mark.asyncio
    async def test_post_message_length_boundary(self, test_session, general_room, test_user_2, published_events):
        """2000자는 허용, 2001자는 거절"""
        with pytest.raises(ValidationException) as exc_info:
            await message_service.post_message(test_session, general_room.id, test_user_2, "a" * 2001)
        assert exc_info.value.message == "Message is too long"

        message = await message_service.post_message(test_session, general_room.id, test_user_2, "a" * 2000)
        assert len(message.message) == 2000

    @pytest.mark.asyncio
    async def test_post_empty_message(self, test_session, general_room, test_user_2):
        with pytest.raises(ValidationException) as exc_info:
            await message_service.post_message(test_session, general_room.id, test_user_2, "   ")
        assert exc_info.value.message == "Message cannot be empty"

    @pytest.mark.asyncio
    async def test_post_message_non_participant(self, test_session, general_room, test_user_4):
        with pytest.raises(AuthorizationException):
            await message_service.post_message(test_session, general_room.id, test_user_4, "hello")

    @pytest.mark.asyncio
    async def test_list_messages_excludes_deleted(self, test_session, general_room, test_user_2, test_user_3, published_events):
        first = await message_service.post_message(test_session, general_room.id, test_user_2, "first")
        await message_service.post_message(test_session, general_room.id, test_user_3, "second")
        await message_service.post_message(test_session, general_room.id, test_user_2, "third")
        await message_service.delete_message(test_session, first.id, test_user_2)

        messages, room = await message_service.list_messages(test_session, general_room.id, test_user_3.id)

        assert [m.message for m in messages] == ["second", "third"]
        assert room.id == general_room.id

    @pytest.mark.asyncio
    async def test_edit_message(self, test_session, general_room, test_user_2, published_events):
        message = await message_service.post_message(test_session, general_room.id, test_user_2, "helo")

        edited = await message_service.edit_message(test_session, message.id, test_user_2, "hello")

        assert edited.message == "hello"
        assert edited.is_edited is True
        frame = published_events[-1]
        assert frame["event"] == "MessageUpdated"
        assert frame["data"]["message"]["message"] == "hello"
        assert frame["data"]["message"]["user"]["id"] == test_user_2.id
        assert frame["data"]["user"]["id"] == test_user_2.id

    @pytest.mark.asyncio
    async def test_edit_by_non_author(self, test_session, general_room, test_user_2, test_user_3, published_events):
        """작성자가 아니면 수정 불가, 메시지는 그대로"""
        message = await message_service.post_message(test_session, general_room.id, test_user_2, "original")
        message_id = message.id
        events_before = len(published_events)

        with pytest.raises(AuthorizationException):
            await message_service.edit_message(test_session, message_id, test_user_3, "hijacked")

        unchanged = await message_service.find_message_by_id(test_session, message_id)
        assert unchanged.message == "original"
        assert unchanged.is_edited is False
        assert len(published_events) == events_before

    @pytest.mark.asyncio
    async def test_edit_validation(self, test_session, general_room, test_user_2, published_events):
        message = await message_service.post_message(test_session, general_room.id, test_user_2, "original")

        with pytest.raises(ValidationException):
            await message_service.edit_message(test_session, message.id, test_user_2, "")

    @pytest.mark.asyncio
    async def test_edit_missing_message(self, test_session, test_user_2):
        with pytest.raises(ResourceNotFoundException):
            await message_service.edit_message(test_session, 9999, test_user_2, "hello")

    @pytest.mark.asyncio
    async def test_delete_message(self, test_session, general_room, test_user_2, published_events):
        message = await message_service.post_message(test_session, general_room.id, test_user_2, "bye")
        message_id = message.id

        await message_service.delete_message(test_session, message_id, test_user_2)

        assert await message_service.find_message_by_id(test_session, message_id) is None
        frame = published_events[-1]
        assert frame["event"] == "MessageDeleted"
        assert frame["data"] == {"message_id": message_id, "room_id": general_room.id, "deleted_by": test_user_2.id}

        with pytest.raises(ResourceNotFoundException):
            await message_service.edit_message(test_session, message_id, test_user_2, "revived")

    @pytest.mark.asyncio
    async def test_delete_by_non_author(self, test_session, general_room, test_user_1, test_user_2, published_events):
        message = await message_service.post_message(test_session, general_room.id, test_user_2, "mine")

        with pytest.raises(AuthorizationException):
            await message_service.delete_message(test_session, message.id, test_user_1)


class TestMessageAPI:
    """메시지 API 테스트"""

    @pytest.mark.asyncio
    async def test_post_and_list(self, client: AsyncClient, headers_user_2, headers_user_3, general_room):
        response = await client.post(
            f"/rooms/{general_room.id}/messages",
            data={"message": "hello"},
            headers=headers_user_2
        )

        assert response.status_code == status.HTTP_201_CREATED
        created = response.json()
        assert created["message"] == "hello"
        assert created["attachment"] is None
        assert created["user"]["online_status"] == "online"

        response = await client.get(f"/rooms/{general_room.id}/messages", headers=headers_user_3)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert [m["id"] for m in data["messages"]] == [created["id"]]
        assert data["room"]["name"] == "General"

    @pytest.mark.asyncio
    async def test_list_messages_forbidden(self, client: AsyncClient, headers_user_4, general_room):
        response = await client.get(f"/rooms/{general_room.id}/messages", headers=headers_user_4)

        assert response.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.asyncio
    async def test_post_attachment_only(self, client: AsyncClient, headers_user_2, general_room, upload_dir):
        response = await client.post(
            f"/rooms/{general_room.id}/messages",
            files={"attachment": ("report.pdf", b"%PDF-1.4 fake", "application/pdf")},
            headers=headers_user_2
        )

        assert response.status_code == status.HTTP_201_CREATED
        attachment = response.json()["attachment"]
        assert attachment["original_name"] == "report.pdf"
        assert attachment["size"] == len(b"%PDF-1.4 fake")
        assert (upload_dir / attachment["path"]).exists()

    @pytest.mark.asyncio
    async def test_post_attachment_too_large(self, client: AsyncClient, headers_user_2, general_room, monkeypatch):
        from app.core.config import settings
        monkeypatch.setattr(settings, "max_attachment_size", 10)

        response = await client.post(
            f"/rooms/{general_room.id}/messages",
            data={"message": "big file"},
            files={"attachment": ("big.bin", b"x" * 11, "application/octet-stream")},
            headers=headers_user_2
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.json()["code"] == "validation_error"

    @pytest.mark.asyncio
    async def test_download_attachment(self, client: AsyncClient, headers_user_2, headers_user_4, general_room):
        response = await client.post(
            f"/rooms/{general_room.id}/messages",
            data={"message": "see attached"},
            files={"attachment": ("notes.txt", b"meeting notes", "text/plain")},
            headers=headers_user_2
        )
        message_id = response.json()["id"]

        # 인증만 되어 있으면 참여자가 아니어도 다운로드 가능
        response = await client.get(f"/messages/{message_id}/download", headers=headers_user_4)

        assert response.status_code == status.HTTP_200_OK
        assert response.content == b"meeting notes"
        assert "notes.txt" in response.headers["content-disposition"]

    @pytest.mark.asyncio
    async def test_download_without_attachment(self, client: AsyncClient, headers_user_2, general_room):
        response = await client.post(
            f"/rooms/{general_room.id}/messages",
            data={"message": "plain"},
            headers=headers_user_2
        )

        response = await client.get(f"/messages/{response.json()['id']}/download", headers=headers_user_2)

        assert response.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio
    async def test_download_missing_blob(self, client: AsyncClient, headers_user_2, general_room, upload_dir):
        response = await client.post(
            f"/rooms/{general_room.id}/messages",
            files={"attachment": ("gone.txt", b"soon gone", "text/plain")},
            headers=headers_user_2
        )
        data = response.json()
        (upload_dir / data["attachment"]["path"]).unlink()

        response = await client.get(f"/messages/{data['id']}/download", headers=headers_user_2)

        assert response.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio
    async def test_edit_and_delete(self, client: AsyncClient, headers_user_2, headers_user_3, general_room):
        response = await client.post(
            f"/rooms/{general_room.id}/messages",
            data={"message": "draft"},
            headers=headers_user_2
        )
        message_id = response.json()["id"]

        response = await client.patch(f"/messages/{message_id}", json={"message": "final"}, headers=headers_user_3)
        assert response.status_code == status.HTTP_403_FORBIDDEN

        response = await client.patch(f"/messages/{message_id}", json={"message": "final"}, headers=headers_user_2)
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["is_edited"] is True

        response = await client.delete(f"/messages/{message_id}", headers=headers_user_2)
        assert response.status_code == status.HTTP_200_OK

        response = await client.get(f"/rooms/{general_room.id}/messages", headers=headers_user_2)
        assert response.json()["messages"] == []
