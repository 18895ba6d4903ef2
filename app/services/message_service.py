"""
Message service layer for database operations.

Handles posting, editing, soft-deleting messages and the reaction map.
Successful writes publish a domain event to the room channel.
"""

from datetime import datetime, timedelta
from typing import Optional, List, Tuple
from fastapi import UploadFile
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from sqlalchemy.orm import selectinload

from app.core.errors import (
    AuthorizationException,
    ConflictException,
    ResourceNotFoundException,
    message_not_found_error,
)
from app.core.logging import get_logger
from app.core.validators import Validator
from app.domain.events import MessageSent, MessageUpdated, MessageReactionUpdated, MessageDeleted
from app.models.messages import Message, apply_reaction
from app.models.rooms import Room
from app.models.users import User
from app.schemas.message import MessageResponse
from app.schemas.user import UserSummary
from app.services import file_service, room_service
from app.services.file_service import StoredAttachment
from app.websockets.broadcaster import broadcaster

logger = get_logger(__name__)

# 반응 compare-and-swap 최대 시도 횟수
REACTION_CAS_ATTEMPTS = 3


def serialize_message(message: Message, author: Optional[User] = None) -> dict:
    return MessageResponse.from_message(message, author).model_dump(mode="json")


def serialize_user(user: User) -> dict:
    return UserSummary.model_validate(user).model_dump(mode="json")


# =============================================================================
# Message Queries
# =============================================================================

async def find_message_by_id(db: AsyncSession, message_id: int) -> Optional[Message]:
    """메시지 ID로 조회 (작성자 포함, 삭제된 메시지 제외)"""
    result = await db.execute(
        select(Message)
        .options(selectinload(Message.user))
        .where(Message.id == message_id, Message.deleted_at.is_(None))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def list_messages(db: AsyncSession, room_id: int, user_id: int) -> Tuple[List[Message], Room]:
    """채팅방 메시지 목록 (오래된 순) 과 채팅방 정보

    참여자만 조회할 수 있으며 조회 시 마지막 읽은 시각을 갱신합니다.
    """
    room = await room_service.get_room_for_user(db, room_id, user_id)

    result = await db.execute(
        select(Message)
        .options(selectinload(Message.user))
        .where(Message.room_id == room_id, Message.deleted_at.is_(None))
        .order_by(Message.created_at.asc(), Message.id.asc())
    )
    return list(result.scalars().all()), room


# =============================================================================
# Message Operations
# =============================================================================

def _next_activity_time(room: Room) -> datetime:
    """채팅방 updated_at 이 항상 증가하도록 새 활동 시각 계산"""
    now = datetime.utcnow()
    if room.updated_at is not None and now <= room.updated_at:
        return room.updated_at + timedelta(microseconds=1)
    return now


async def post_message(
    db: AsyncSession,
    room_id: int,
    author: User,
    text: Optional[str],
    upload: Optional[UploadFile] = None
) -> Message:
    """메시지 전송

    본문 검증 후 첨부파일을 저장하고, 메시지 저장과 함께 채팅방 활동 시각을 갱신합니다.
    """
    text = Validator.validate_message_text(text, has_attachment=upload is not None)
    await room_service.require_participant(db, room_id, author.id)
    room = await room_service.find_room_by_id(db, room_id)

    attachment: Optional[StoredAttachment] = None
    if upload is not None:
        attachment = await file_service.save_attachment(upload, author.id)

    activity_time = _next_activity_time(room)
    try:
        message = Message(
            room_id=room_id,
            user_id=author.id,
            message=text,
            attachment_path=attachment.path if attachment else None,
            attachment_name=attachment.original_name if attachment else None,
            attachment_size=attachment.size if attachment else None,
            reactions={},
            reactions_version=0,
            is_edited=False,
            created_at=activity_time,
            updated_at=activity_time
        )
        db.add(message)
        room.updated_at = activity_time
        await db.commit()
    except Exception:
        await db.rollback()
        if attachment is not None:
            await file_service.delete_file(attachment.path, author.id)
        raise

    message = await find_message_by_id(db, message.id)
    await broadcaster.publish(MessageSent(
        room_id=room_id,
        message=serialize_message(message, author),
        sender=serialize_user(author),
        timestamp=datetime.utcnow()
    ))

    logger.info(f"Message {message.id} posted to room {room_id}", extra={
        "room_id": room_id,
        "user_id": author.id,
        "has_attachment": attachment is not None
    })
    return message


async def _get_own_message(db: AsyncSession, message_id: int, actor: User, action: str) -> Message:
    message = await find_message_by_id(db, message_id)
    if message is None:
        raise message_not_found_error(message_id)

    if message.user_id != actor.id:
        raise AuthorizationException(f"You can only {action} your own messages")
    return message


async def edit_message(db: AsyncSession, message_id: int, actor: User, new_text: Optional[str]) -> Message:
    """메시지 수정 (작성자 전용)"""
    message = await _get_own_message(db, message_id, actor, "edit")
    new_text = Validator.validate_message_text(new_text)

    message.edit_content(new_text)
    message.updated_at = datetime.utcnow()
    await db.commit()

    message = await find_message_by_id(db, message_id)
    await broadcaster.publish(MessageUpdated(
        room_id=message.room_id,
        message=serialize_message(message),
        user=serialize_user(actor),
        timestamp=datetime.utcnow()
    ))

    logger.info(f"Message {message_id} edited by user {actor.id}")
    return message


async def delete_message(db: AsyncSession, message_id: int, actor: User) -> None:
    """메시지 삭제 (작성자 전용, soft delete)"""
    message = await _get_own_message(db, message_id, actor, "delete")
    room_id = message.room_id

    message.soft_delete()
    await db.commit()

    await broadcaster.publish(MessageDeleted(
        room_id=room_id,
        message_id=message_id,
        deleted_by=actor.id,
        timestamp=datetime.utcnow()
    ))

    logger.info(f"Message {message_id} deleted by user {actor.id}")


# =============================================================================
# Reactions
# =============================================================================

async def _update_reactions(db: AsyncSession, message_id: int, actor: User, emoji: Optional[str], add: bool) -> Message:
    """반응 맵 갱신

    reactions_version 을 조건으로 한 compare-and-swap 으로 저장합니다.
    다른 요청이 먼저 저장했다면 다시 읽어서 재적용하고,
    시도 횟수를 모두 소진하면 ConflictException 을 발생시킵니다.
    """
    emoji = Validator.validate_reaction(emoji)

    for attempt in range(1, REACTION_CAS_ATTEMPTS + 1):
        message = await find_message_by_id(db, message_id)
        if message is None:
            raise message_not_found_error(message_id)

        current = message.reactions or {}
        updated = apply_reaction(current, emoji, actor.id, add)
        if updated == current:
            break

        version = message.reactions_version or 0
        result = await db.execute(
            update(Message)
            .where(Message.id == message_id, Message.reactions_version == version)
            .values(reactions=updated, reactions_version=version + 1, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        # 변경 사항이 없어도 트랜잭션을 끝내야 다음 조회에서 최신 값을 읽음
        await db.commit()

        if result.rowcount == 1:
            break

        logger.info(f"Reaction update on message {message_id} lost a race (attempt {attempt})", extra={
            "message_id": message_id,
            "user_id": actor.id
        })
    else:
        raise ConflictException(
            "Reaction update conflicted with another request, please retry",
            details={"message_id": message_id}
        )

    message = await find_message_by_id(db, message_id)
    await broadcaster.publish(MessageReactionUpdated(
        room_id=message.room_id,
        message=serialize_message(message),
        timestamp=datetime.utcnow()
    ))
    return message


async def add_reaction(db: AsyncSession, message_id: int, actor: User, emoji: Optional[str]) -> Message:
    """반응 추가 (이미 추가했다면 변화 없음)"""
    return await _update_reactions(db, message_id, actor, emoji, add=True)


async def remove_reaction(db: AsyncSession, message_id: int, actor: User, emoji: Optional[str]) -> Message:
    """반응 제거 (없으면 변화 없음)"""
    return await _update_reactions(db, message_id, actor, emoji, add=False)


# =============================================================================
# Attachments
# =============================================================================

async def get_attachment(db: AsyncSession, message_id: int) -> Message:
    """첨부파일이 있는 메시지 조회 (파일이 실제로 존재해야 함)"""
    message = await find_message_by_id(db, message_id)
    if message is None:
        raise message_not_found_error(message_id)

    if not message.has_attachment or not await file_service.file_exists(message.attachment_path):
        raise ResourceNotFoundException("Attachment", details={"message_id": message_id})
    return message
