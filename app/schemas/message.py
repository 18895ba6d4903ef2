from datetime import datetime
from typing import Optional, List, Dict
from pydantic import BaseModel, Field

from .user import UserSummary
from .room import RoomResponse


class MessageUpdate(BaseModel):
    """메시지 수정 스키마"""
    message: Optional[str] = Field(None, description="수정된 메시지 내용 (최대 2000자)")


class ReactionRequest(BaseModel):
    """반응 추가/제거 스키마"""
    reaction: Optional[str] = Field(None, description="반응 이모지 (최대 10자)")


class AttachmentInfo(BaseModel):
    path: str
    original_name: Optional[str] = None
    size: Optional[int] = None


class MessageResponse(BaseModel):
    """메시지 응답 스키마"""
    id: int = Field(..., description="메시지 ID")
    room_id: int = Field(..., description="채팅방 ID")
    user_id: int = Field(..., description="작성자 ID")
    message: str = Field(..., description="메시지 내용")
    attachment: Optional[AttachmentInfo] = Field(None, description="첨부파일")
    reactions: Dict[str, List[int]] = Field(default_factory=dict, description="이모지별 반응한 사용자 ID")
    is_edited: bool = Field(default=False, description="수정 여부")
    created_at: Optional[datetime] = Field(None, description="생성일시")
    updated_at: Optional[datetime] = Field(None, description="수정일시")
    user: Optional[UserSummary] = Field(None, description="작성자 정보")

    @classmethod
    def from_message(cls, message, author=None) -> "MessageResponse":
        author = author if author is not None else message.user
        attachment = None
        if message.attachment_path:
            attachment = AttachmentInfo(
                path=message.attachment_path,
                original_name=message.attachment_name,
                size=message.attachment_size,
            )

        return cls(
            id=message.id,
            room_id=message.room_id,
            user_id=message.user_id,
            message=message.message or "",
            attachment=attachment,
            reactions=message.reactions or {},
            is_edited=bool(message.is_edited),
            created_at=message.created_at,
            updated_at=message.updated_at,
            user=UserSummary.model_validate(author) if author is not None else None,
        )


class MessageListResponse(BaseModel):
    """메시지 목록 응답 (채팅방 정보 포함)"""
    messages: List[MessageResponse]
    room: RoomResponse
