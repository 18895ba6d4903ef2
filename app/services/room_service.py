"""
Room service layer for database operations.

Handles rooms, participants and their roles. Every function takes the
AsyncSession first and raises app.core.errors exceptions on failure.
"""

from datetime import datetime
from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, func, distinct, and_
from sqlalchemy.orm import selectinload

from app.core.errors import (
    AuthorizationException,
    ConflictException,
    ResourceNotFoundException,
    room_not_found_error,
    user_not_found_error,
    access_denied_error,
)
from app.core.logging import get_logger
from app.core.validators import Validator
from app.models.rooms import Room
from app.models.participants import Participant, Role, ROLES_CAN_ADD, ROLES_CAN_REMOVE
from app.models.messages import Message
from app.services import auth_service, file_service

logger = get_logger(__name__)


# =============================================================================
# Room Queries
# =============================================================================

async def find_room_by_id(db: AsyncSession, room_id: int) -> Optional[Room]:
    """채팅방 ID로 조회"""
    result = await db.execute(select(Room).where(Room.id == room_id))
    return result.scalar_one_or_none()


async def get_room_with_relations(db: AsyncSession, room_id: int) -> Optional[Room]:
    """생성자와 참여자(사용자 정보 포함)를 함께 로드"""
    result = await db.execute(
        select(Room)
        .options(
            selectinload(Room.creator),
            selectinload(Room.participants).selectinload(Participant.user)
        )
        .where(Room.id == room_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def find_participant(db: AsyncSession, room_id: int, user_id: int) -> Optional[Participant]:
    result = await db.execute(
        select(Participant).where(
            and_(Participant.room_id == room_id, Participant.user_id == user_id)
        )
    )
    return result.scalar_one_or_none()


async def is_participant(db: AsyncSession, room_id: int, user_id: int) -> bool:
    return await find_participant(db, room_id, user_id) is not None


async def list_rooms_with_stats(db: AsyncSession) -> List[dict]:
    """전체 채팅방 목록 (메시지/참여자 수 포함, 최근 활동순)

    삭제된 메시지는 집계에서 제외합니다.
    """
    messages_count = func.count(distinct(Message.id)).label("messages_count")
    participants_count = func.count(distinct(Participant.id)).label("participants_count")

    result = await db.execute(
        select(Room, messages_count, participants_count)
        .outerjoin(Message, and_(Message.room_id == Room.id, Message.deleted_at.is_(None)))
        .outerjoin(Participant, Participant.room_id == Room.id)
        .group_by(Room.id)
        .order_by(Room.updated_at.desc(), Room.id.desc())
    )

    rooms = []
    for room, message_total, participant_total in result.all():
        rooms.append({
            "id": room.id,
            "name": room.name,
            "description": room.description,
            "is_private": room.is_private,
            "creator_id": room.creator_id,
            "created_at": room.created_at,
            "updated_at": room.updated_at,
            "messages_count": message_total,
            "participants_count": participant_total,
        })
    return rooms


# =============================================================================
# Room Operations
# =============================================================================

async def create_room(
    db: AsyncSession,
    creator_id: int,
    name: Optional[str],
    participant_ids: Optional[List[int]],
    description: Optional[str] = None,
    is_private: bool = False
) -> Room:
    """채팅방 생성

    생성자는 owner, 나머지 사용자는 member 로 추가됩니다.
    생성자 본인 ID와 중복 ID는 무시하며 전체가 하나의 트랜잭션입니다.
    """
    name = Validator.validate_room_name(name)
    description = Validator.validate_room_description(description)
    participant_ids = Validator.validate_participant_ids(participant_ids)

    member_ids = []
    for user_id in participant_ids:
        if user_id != creator_id and user_id not in member_ids:
            member_ids.append(user_id)

    existing_ids = await auth_service.find_existing_user_ids(db, member_ids)
    for user_id in member_ids:
        if user_id not in existing_ids:
            raise user_not_found_error(user_id)

    now = datetime.utcnow()
    try:
        room = Room(
            name=name,
            description=description,
            is_private=bool(is_private),
            creator_id=creator_id,
            created_at=now,
            updated_at=now
        )
        db.add(room)
        await db.flush()

        db.add(Participant(room_id=room.id, user_id=creator_id, role=Role.OWNER.value, joined_at=now))
        for user_id in member_ids:
            db.add(Participant(room_id=room.id, user_id=user_id, role=Role.MEMBER.value, joined_at=now))

        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(f"Room {room.id} created by user {creator_id}", extra={
        "room_id": room.id,
        "user_id": creator_id,
        "participants_count": len(member_ids) + 1
    })
    return await get_room_with_relations(db, room.id)


async def require_participant(db: AsyncSession, room_id: int, user_id: int) -> Participant:
    """채팅방 존재 및 참여 여부 확인 (없으면 404, 참여자가 아니면 403)"""
    if await find_room_by_id(db, room_id) is None:
        raise room_not_found_error(room_id)

    participant = await find_participant(db, room_id, user_id)
    if participant is None:
        raise access_denied_error()
    return participant


async def touch_last_read(db: AsyncSession, participant: Participant) -> None:
    participant.last_read_at = datetime.utcnow()
    await db.commit()


async def get_room_for_user(db: AsyncSession, room_id: int, user_id: int) -> Room:
    """채팅방 상세 조회 (참여자 전용, 마지막 읽은 시각 갱신)"""
    participant = await require_participant(db, room_id, user_id)
    await touch_last_read(db, participant)
    return await get_room_with_relations(db, room_id)


async def add_participant(db: AsyncSession, room_id: int, actor_id: int, target_user_id: int) -> Room:
    """참여자 추가 (채팅방 참여자라면 누구나 가능)"""
    if await find_room_by_id(db, room_id) is None:
        raise room_not_found_error(room_id)

    actor = await find_participant(db, room_id, actor_id)
    if actor is None or actor.role not in ROLES_CAN_ADD:
        raise AuthorizationException("You don't have permission to add participants")

    if await auth_service.find_user_by_id(db, target_user_id) is None:
        raise user_not_found_error(target_user_id)

    if await is_participant(db, room_id, target_user_id):
        raise ConflictException("User is already a participant", details={"user_id": target_user_id})

    db.add(Participant(
        room_id=room_id,
        user_id=target_user_id,
        role=Role.MEMBER.value,
        joined_at=datetime.utcnow()
    ))
    await db.commit()

    logger.info(f"User {target_user_id} added to room {room_id} by user {actor_id}")
    return await get_room_with_relations(db, room_id)


async def remove_participant(db: AsyncSession, room_id: int, actor_id: int, target_user_id: int) -> None:
    """참여자 내보내기 (owner/admin 전용, owner 는 내보낼 수 없음)"""
    if await find_room_by_id(db, room_id) is None:
        raise room_not_found_error(room_id)

    actor = await find_participant(db, room_id, actor_id)
    if actor is None or actor.role not in ROLES_CAN_REMOVE:
        raise AuthorizationException("You don't have permission to remove participants")

    target = await find_participant(db, room_id, target_user_id)
    if target is None:
        raise ResourceNotFoundException("Participant", details={"user_id": target_user_id})

    if target.is_owner:
        raise AuthorizationException("Cannot remove room owner")

    await db.execute(delete(Participant).where(Participant.id == target.id))
    await db.commit()

    logger.info(f"User {target_user_id} removed from room {room_id} by user {actor_id}")


async def delete_room(db: AsyncSession, room_id: int, actor_id: int) -> None:
    """채팅방 삭제 (owner 전용, 참여자와 메시지 및 첨부파일 함께 삭제)"""
    if await find_room_by_id(db, room_id) is None:
        raise room_not_found_error(room_id)

    actor = await find_participant(db, room_id, actor_id)
    if actor is None or not actor.is_owner:
        raise AuthorizationException("Only the room owner can delete this room")

    result = await db.execute(
        select(Message.attachment_path).where(
            Message.room_id == room_id,
            Message.attachment_path.is_not(None)
        )
    )
    attachment_paths = list(result.scalars().all())

    try:
        await db.execute(delete(Message).where(Message.room_id == room_id))
        await db.execute(delete(Participant).where(Participant.room_id == room_id))
        await db.execute(delete(Room).where(Room.id == room_id))
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    for path in attachment_paths:
        await file_service.delete_file(path, actor_id)

    logger.info(f"Room {room_id} deleted by user {actor_id}")
