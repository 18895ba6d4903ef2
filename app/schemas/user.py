from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, EmailStr, Field, ConfigDict


class UserCreate(BaseModel):
    """회원가입 요청 스키마"""
    name: str = Field(..., description="이름")
    email: EmailStr = Field(..., description="사용자 이메일")
    password: str = Field(..., description="비밀번호 (8자 이상, 영문+숫자)")
    password_confirmation: Optional[str] = Field(None, description="비밀번호 확인")


class UserLogin(BaseModel):
    """사용자 로그인 스키마"""
    email: EmailStr = Field(..., description="이메일")
    password: str = Field(..., description="비밀번호")


class UserResponse(BaseModel):
    """사용자 응답 스키마"""
    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="사용자 ID")
    name: str = Field(..., description="이름")
    email: str = Field(..., description="이메일")
    avatar: Optional[str] = Field(None, description="아바타 경로")
    is_online: bool = Field(default=False, description="온라인 상태")
    last_seen_at: Optional[datetime] = Field(None, description="마지막 접속 시간")
    created_at: Optional[datetime] = Field(None, description="생성일시")
    updated_at: Optional[datetime] = Field(None, description="수정일시")


class UserSummary(BaseModel):
    """메시지 작성자 요약 정보"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    avatar: Optional[str] = None
    email: str
    online_status: str = "offline"


class UserPresence(BaseModel):
    """presence 채널로 전송되는 상태 정보"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    is_online: bool
    last_seen_at: Optional[datetime] = None


class AuthResponse(BaseModel):
    """토큰 발급 응답"""
    user: UserResponse
    token: str


class Token(BaseModel):
    """OAuth2 토큰 스키마 (Swagger UI용)"""
    access_token: str = Field(..., description="액세스 토큰")
    token_type: str = Field(default="bearer", description="토큰 타입")
    expires_in: int = Field(..., description="액세스 토큰 만료 시간(초)")


class OnlineStatusUpdate(BaseModel):
    """온라인 상태 업데이트 스키마"""
    is_online: bool = Field(..., description="온라인 상태")


class RoomSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    is_private: bool
    creator_id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserWithRooms(UserResponse):
    """참여 중인 채팅방이 포함된 사용자 정보"""
    rooms: List[RoomSummary] = Field(default_factory=list, description="참여 중인 채팅방")
