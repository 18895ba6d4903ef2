from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.mysql import get_async_session
from app.models.users import User
from app.schemas.message import MessageUpdate, MessageResponse, ReactionRequest
from app.api.auth import get_current_user
from app.core.logging import get_logger, log_file_operation
from app.services import message_service, file_service

logger = get_logger(__name__)

router = APIRouter(prefix="/messages", tags=["Messages"])


@router.patch("/{message_id}", response_model=MessageResponse)
async def edit_message(
    message_id: int,
    message_data: MessageUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
) -> MessageResponse:
    """메시지 수정 (작성자 전용)"""
    message = await message_service.edit_message(db, message_id, current_user, message_data.message)
    return MessageResponse.from_message(message)


@router.delete("/{message_id}")
async def delete_message(
    message_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
) -> dict:
    """메시지 삭제 (작성자 전용, soft delete)"""
    await message_service.delete_message(db, message_id, current_user)
    return {"message": "Message deleted successfully"}


@router.post("/{message_id}/reactions", response_model=MessageResponse)
async def add_reaction(
    message_id: int,
    reaction_data: ReactionRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
) -> MessageResponse:
    """
    반응 추가

    같은 반응을 여러 번 추가해도 한 번만 기록됩니다.
    """
    message = await message_service.add_reaction(db, message_id, current_user, reaction_data.reaction)
    return MessageResponse.from_message(message)


@router.delete("/{message_id}/reactions", response_model=MessageResponse)
async def remove_reaction(
    message_id: int,
    reaction_data: ReactionRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
) -> MessageResponse:
    """
    반응 제거

    추가하지 않은 반응을 제거해도 오류 없이 현재 메시지를 반환합니다.
    """
    message = await message_service.remove_reaction(db, message_id, current_user, reaction_data.reaction)
    return MessageResponse.from_message(message)


@router.get("/{message_id}/download")
async def download_attachment(
    message_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
) -> FileResponse:
    """
    첨부파일 다운로드 (원래 파일명으로 전송)

    인증된 사용자라면 채팅방 참여 여부와 관계없이 다운로드할 수 있습니다.
    """
    message = await message_service.get_attachment(db, message_id)
    log_file_operation(logger, "download", message.attachment_path, current_user.id, file_size=message.attachment_size)

    return FileResponse(
        path=file_service.resolve_path(message.attachment_path),
        filename=message.attachment_name or "attachment",
        media_type="application/octet-stream"
    )
