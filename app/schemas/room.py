from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict

from .user import UserResponse


class RoomCreate(BaseModel):
    """채팅방 생성 스키마 (세부 검증은 서비스 계층에서 수행)"""
    name: Optional[str] = Field(None, description="채팅방 이름 (최대 255자)")
    description: Optional[str] = Field(None, description="설명 (최대 500자)")
    is_private: bool = Field(default=False, description="비공개 여부")
    participants: List[int] = Field(default_factory=list, description="초대할 사용자 ID 목록")


class ParticipantAdd(BaseModel):
    """참여자 추가 스키마"""
    user_id: int = Field(..., description="추가할 사용자 ID")


class ParticipantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    room_id: int
    user_id: int
    role: str = Field(..., description="owner, admin, member")
    joined_at: Optional[datetime] = None
    last_read_at: Optional[datetime] = None
    user: Optional[UserResponse] = None


class RoomResponse(BaseModel):
    """채팅방 상세 응답 (생성자와 참여자 포함)"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    is_private: bool
    creator_id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    creator: Optional[UserResponse] = None
    participants: List[ParticipantResponse] = Field(default_factory=list)


class RoomWithStats(BaseModel):
    """목록용 채팅방 (메시지/참여자 수 집계 포함)"""
    id: int
    name: str
    description: Optional[str] = None
    is_private: bool
    creator_id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    messages_count: int = 0
    participants_count: int = 0
