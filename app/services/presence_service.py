"""
온라인 상태(presence) 관리 서비스

User.is_online / User.last_seen_at 은 이 모듈을 통해서만 변경합니다.
갱신은 타임스탬프 기준 last-write-wins 조건부 UPDATE 로 적용되어,
순서가 뒤바뀐 요청이 더 최신 상태를 덮어쓰지 않습니다.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import update, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from app.core.logging import get_logger
from app.domain.events import UserStatusUpdated
from app.models.users import User
from app.schemas.user import UserPresence
from app.websockets.broadcaster import broadcaster

logger = get_logger(__name__)


def presence_payload(user: User) -> dict:
    return UserPresence.model_validate(user).model_dump(mode="json")


async def set_status(
    db: AsyncSession,
    user: User,
    is_online: bool,
    at: Optional[datetime] = None,
    broadcast_always: bool = False
) -> bool:
    """
    사용자 온라인 상태 변경

    Args:
        user: 대상 사용자
        is_online: 변경할 상태
        at: 상태 변경 시각 (기본값: 현재 시각)
        broadcast_always: 상태가 그대로여도 presence 이벤트 전송

    Returns:
        적용 여부 (더 최신 기록이 이미 있으면 False)
    """
    at = at or datetime.utcnow()
    was_online = bool(user.is_online)

    result = await db.execute(
        update(User)
        .where(
            User.id == user.id,
            or_(User.last_seen_at.is_(None), User.last_seen_at <= at)
        )
        .values(is_online=is_online, last_seen_at=at)
        .execution_options(synchronize_session=False)
    )
    await db.commit()

    if result.rowcount == 0:
        logger.info(f"Ignored stale presence update for user {user.id}", extra={
            "user_id": user.id,
            "event_type": "presence_stale"
        })
        return False

    set_committed_value(user, "is_online", is_online)
    set_committed_value(user, "last_seen_at", at)

    if broadcast_always or was_online != is_online:
        await broadcaster.publish(
            UserStatusUpdated(user=presence_payload(user), timestamp=datetime.utcnow())
        )

    logger.info(f"User {user.id} set to {'online' if is_online else 'offline'}", extra={
        "user_id": user.id,
        "event_type": "user_online" if is_online else "user_offline"
    })
    return True


async def mark_online(db: AsyncSession, user: User) -> bool:
    """인증된 요청마다 호출: 오프라인으로 기록된 사용자만 온라인으로 전환"""
    if user.is_online:
        return False
    return await set_status(db, user, True)


async def mark_offline(db: AsyncSession, user: User) -> bool:
    return await set_status(db, user, False, broadcast_always=True)
