"""
Authentication service layer for database operations.

Handles all database queries and data operations related to users, tokens and profiles.
"""

from datetime import datetime
from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_

from app.models.users import User
from app.models.rooms import Room
from app.models.participants import Participant
from app.models.revoked_tokens import RevokedToken
from app.utils.auth import verify_password


# =============================================================================
# User CRUD Operations
# =============================================================================

async def find_user_by_id(db: AsyncSession, user_id: int) -> Optional[User]:
    """사용자 ID로 조회"""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def find_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    """이메일로 사용자 조회"""
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def find_existing_user_ids(db: AsyncSession, user_ids: List[int]) -> set:
    """주어진 ID 중 실제 존재하는 사용자 ID 집합"""
    if not user_ids:
        return set()
    result = await db.execute(select(User.id).where(User.id.in_(user_ids)))
    return set(result.scalars().all())


async def create_user(
    db: AsyncSession,
    name: str,
    email: str,
    password_hash: str
) -> User:
    """새 사용자 생성"""
    new_user = User(
        name=name,
        email=email,
        password_hash=password_hash,
        is_online=False,
        created_at=datetime.utcnow(),
        updated_at=datetime.utcnow()
    )

    db.add(new_user)
    await db.commit()
    await db.refresh(new_user)

    return new_user


async def is_email_exists(db: AsyncSession, email: str) -> bool:
    """이메일이 이미 존재하는지 확인"""
    user = await find_user_by_email(db, email)
    return user is not None


async def authenticate_user_by_email(db: AsyncSession, email: str, password: str) -> Optional[User]:
    """이메일/비밀번호 인증. 실패 시 None"""
    user = await find_user_by_email(db, email)
    if not user or not verify_password(password, user.password_hash):
        return None
    return user


# =============================================================================
# User Directory
# =============================================================================

async def list_other_users(db: AsyncSession, user_id: int) -> List[User]:
    """본인을 제외한 사용자 목록 (이름순)"""
    result = await db.execute(
        select(User).where(User.id != user_id).order_by(User.name, User.id)
    )
    return list(result.scalars().all())


async def search_users(db: AsyncSession, user_id: int, query: str, limit: int = 10) -> List[User]:
    """이름 또는 이메일로 사용자 검색 (본인 제외)"""
    pattern = f"%{query}%"
    result = await db.execute(
        select(User)
        .where(
            User.id != user_id,
            or_(User.name.ilike(pattern), User.email.ilike(pattern))
        )
        .order_by(User.name, User.id)
        .limit(limit)
    )
    return list(result.scalars().all())


async def get_user_rooms(db: AsyncSession, user_id: int) -> List[Room]:
    """사용자가 참여 중인 채팅방 목록 (최근 활동순)"""
    result = await db.execute(
        select(Room)
        .join(Participant, Participant.room_id == Room.id)
        .where(Participant.user_id == user_id)
        .order_by(Room.updated_at.desc(), Room.id.desc())
    )
    return list(result.scalars().all())


async def update_profile(db: AsyncSession, user: User, name: str, avatar: Optional[str] = None) -> User:
    """프로필(이름, 아바타) 수정"""
    user.name = name
    if avatar is not None:
        user.avatar = avatar
    user.updated_at = datetime.utcnow()
    await db.commit()
    return user


# =============================================================================
# Token Revocation
# =============================================================================

async def revoke_token(db: AsyncSession, jti: str, user_id: int, expires_at: Optional[datetime] = None) -> None:
    """로그아웃된 토큰을 차단 목록에 추가"""
    if await is_token_revoked(db, jti):
        return
    db.add(RevokedToken(jti=jti, user_id=user_id, expires_at=expires_at, revoked_at=datetime.utcnow()))
    await db.commit()


async def is_token_revoked(db: AsyncSession, jti: str) -> bool:
    result = await db.execute(select(RevokedToken.id).where(RevokedToken.jti == jti))
    return result.scalar_one_or_none() is not None
