from typing import List, Optional
from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.mysql import get_async_session
from app.models.users import User
from app.schemas.room import RoomCreate, ParticipantAdd, RoomResponse, RoomWithStats
from app.schemas.message import MessageResponse, MessageListResponse
from app.api.auth import get_current_user
from app.core.validators import Validator
from app.services import room_service, message_service

router = APIRouter(prefix="/rooms", tags=["Rooms"])


@router.get("", response_model=List[RoomWithStats])
async def list_rooms(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
) -> List[RoomWithStats]:
    """
    채팅방 목록 조회 (최근 활동순)

    각 채팅방에 메시지 수와 참여자 수가 포함됩니다.
    """
    rooms = await room_service.list_rooms_with_stats(db)
    return [RoomWithStats(**room) for room in rooms]


@router.post("", response_model=RoomResponse, status_code=status.HTTP_201_CREATED)
async def create_room(
    room_data: RoomCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
) -> RoomResponse:
    """
    채팅방 생성

    - **name**: 채팅방 이름 (필수, 최대 255자)
    - **description**: 설명 (최대 500자)
    - **is_private**: 비공개 여부
    - **participants**: 초대할 사용자 ID 목록 (최소 1명)

    생성자는 owner 로, 나머지는 member 로 추가됩니다.
    """
    room = await room_service.create_room(
        db,
        creator_id=current_user.id,
        name=room_data.name,
        participant_ids=room_data.participants,
        description=room_data.description,
        is_private=room_data.is_private
    )
    return RoomResponse.model_validate(room)


@router.get("/{room_id}", response_model=RoomResponse)
async def get_room(
    room_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
) -> RoomResponse:
    """채팅방 상세 조회 (참여자 전용)"""
    room = await room_service.get_room_for_user(db, room_id, current_user.id)
    return RoomResponse.model_validate(room)


@router.delete("/{room_id}")
async def delete_room(
    room_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
) -> dict:
    """채팅방 삭제 (owner 전용)"""
    await room_service.delete_room(db, room_id, current_user.id)
    return {"message": "Room deleted successfully"}


@router.post("/{room_id}/participants", response_model=RoomResponse, status_code=status.HTTP_201_CREATED)
async def add_participant(
    room_id: int,
    participant_data: ParticipantAdd,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
) -> RoomResponse:
    """참여자 추가"""
    target_user_id = Validator.validate_positive_integer(participant_data.user_id, "user_id")
    room = await room_service.add_participant(db, room_id, current_user.id, target_user_id)
    return RoomResponse.model_validate(room)


@router.delete("/{room_id}/participants/{user_id}")
async def remove_participant(
    room_id: int,
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
) -> dict:
    """참여자 내보내기 (owner/admin 전용)"""
    await room_service.remove_participant(db, room_id, current_user.id, user_id)
    return {"message": "Participant removed successfully"}


@router.get("/{room_id}/messages", response_model=MessageListResponse)
async def list_messages(
    room_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
) -> MessageListResponse:
    """
    채팅방 메시지 목록 (오래된 순)

    조회 시 마지막 읽은 시각이 갱신됩니다.
    """
    messages, room = await message_service.list_messages(db, room_id, current_user.id)
    return MessageListResponse(
        messages=[MessageResponse.from_message(message) for message in messages],
        room=RoomResponse.model_validate(room)
    )


@router.post("/{room_id}/messages", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def post_message(
    room_id: int,
    message: Optional[str] = Form(None),
    attachment: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
) -> MessageResponse:
    """
    메시지 전송 (multipart/form-data)

    - **message**: 메시지 내용 (최대 2000자, 첨부파일이 있으면 생략 가능)
    - **attachment**: 첨부파일 (최대 10MB)
    """
    if attachment is not None and not attachment.filename:
        attachment = None

    created = await message_service.post_message(db, room_id, current_user, message, attachment)
    return MessageResponse.from_message(created, current_user)
