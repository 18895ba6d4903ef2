from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.mysql import get_async_session
from app.models.users import User
from app.schemas.user import UserResponse, OnlineStatusUpdate
from app.api.auth import get_current_user
from app.services import auth_service, presence_service
from app.core.validators import Validator
from app.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("", response_model=List[UserResponse])
async def list_users(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
) -> List[UserResponse]:
    """본인을 제외한 전체 사용자 목록 (이름순)"""
    users = await auth_service.list_other_users(db, current_user.id)
    return [UserResponse.model_validate(user) for user in users]


@router.get("/search", response_model=List[UserResponse])
async def search_users(
    query: Optional[str] = Query(None, description="검색 쿼리 (이름 또는 이메일, 2~255자)"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
) -> List[UserResponse]:
    """
    사용자를 검색합니다.

    Args:
        query: 검색 쿼리 (이름 또는 이메일)
        current_user: 현재 사용자
        db: 데이터베이스 세션

    Returns:
        List[UserResponse]: 최대 10명의 검색 결과
    """
    query = Validator.validate_search_query(query)
    users = await auth_service.search_users(db, current_user.id, query)
    return [UserResponse.model_validate(user) for user in users]


@router.post("/status", response_model=UserResponse)
async def update_status(
    status_data: OnlineStatusUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
) -> UserResponse:
    """
    온라인 상태 직접 변경

    변경 결과는 presence:users 채널로 전송됩니다.
    """
    await presence_service.set_status(db, current_user, status_data.is_online, broadcast_always=True)
    return UserResponse.model_validate(current_user)
