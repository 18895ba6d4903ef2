from typing import Optional
from fastapi import WebSocket, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger, log_security_event
from app.domain.channels import PRESENCE_CHANNEL, parse_room_channel
from app.models.users import User
from app.services import auth_service, room_service
from app.utils.auth import decode_access_token

logger = get_logger(__name__)


def extract_token(websocket: WebSocket, token: Optional[str] = None) -> Optional[str]:
    """쿼리 파라미터 token 또는 Authorization: Bearer 헤더에서 토큰 추출"""
    if token:
        return token

    authorization = websocket.headers.get("authorization")
    if authorization and authorization.startswith("Bearer "):
        return authorization[len("Bearer "):]
    return None


async def authenticate_websocket(websocket: WebSocket, db: AsyncSession, token: Optional[str] = None) -> Optional[User]:
    """
    WebSocket 연결에서 JWT 토큰을 검증하고 사용자를 반환합니다.

    Args:
        websocket: WebSocket 연결 객체
        db: 데이터베이스 세션
        token: 쿼리 파라미터로 전달된 JWT 액세스 토큰 (없으면 Authorization 헤더 사용)

    Returns:
        User: 인증된 사용자, 인증 실패 시 None (연결은 1008 코드로 종료)
    """
    actual_token = extract_token(websocket, token)
    if not actual_token:
        logger.warning("No token provided for WebSocket connection")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return None

    payload = decode_access_token(actual_token)
    if not payload or not payload.get("sub"):
        logger.warning("Invalid token provided for WebSocket connection")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return None

    jti = payload.get("jti")
    if jti and await auth_service.is_token_revoked(db, jti):
        log_security_event(logger, "revoked_token_websocket", user_id=int(payload["sub"]))
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return None

    user = await auth_service.find_user_by_id(db, int(payload["sub"]))
    if user is None:
        logger.warning(f"WebSocket token refers to unknown user {payload['sub']}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return None

    logger.info(f"WebSocket authentication successful for user: {user.id}")
    return user


async def verify_channel_access(db: AsyncSession, user_id: int, channel: str) -> bool:
    """
    사용자가 채널을 구독할 수 있는지 확인합니다.

    - presence:users 는 인증된 모든 사용자
    - room:{id} 는 공개 채팅방이면 누구나, 비공개 채팅방이면 현재 참여자만
    - 그 외 채널은 거부
    """
    if channel == PRESENCE_CHANNEL:
        return True

    room_id = parse_room_channel(channel)
    if room_id is None:
        return False

    room = await room_service.find_room_by_id(db, room_id)
    if room is None:
        return False

    if not room.is_private:
        return True
    return await room_service.is_participant(db, room_id, user_id)
