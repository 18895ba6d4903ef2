from datetime import datetime
from typing import Optional
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Query, Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.api.auth import get_current_user
from app.core.logging import get_logger, log_websocket_event
from app.database.mysql import get_async_session, get_session_factory
from app.domain.channels import room_channel
from app.models.users import User
from app.services import room_service
from app.websockets.auth import authenticate_websocket
from app.websockets.connection_manager import manager
from app.websockets.handlers import message_handler

logger = get_logger(__name__)

router = APIRouter(prefix="/ws", tags=["WebSocket"])


@router.websocket("")
async def websocket_endpoint(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    session_factory: async_sessionmaker = Depends(get_session_factory)
):
    """
    실시간 채널 WebSocket 엔드포인트

    연결 후 클라이언트는 다음 프레임을 보냅니다.
    - {"type": "subscribe", "channel": "room:1"}
    - {"type": "unsubscribe", "channel": "room:1"}
    - {"type": "ping"}

    구독한 채널의 이벤트는 {"event", "channel", "data", "timestamp"} 형식으로 전달됩니다.
    DB 세션은 인증과 구독 권한 확인 때만 잠깐 열고 닫습니다.
    """
    # 1. WebSocket 인증
    async with session_factory() as db:
        user = await authenticate_websocket(websocket, db, token)
    if user is None:
        return
    user_id = user.id

    # 2. 연결 등록
    await manager.connect(websocket, user_id)
    log_websocket_event(logger, "connect", user_id)

    try:
        await websocket.send_json({
            "type": "connection_established",
            "user_id": user_id,
            "timestamp": datetime.utcnow().isoformat()
        })

        # 3. 프레임 수신 루프
        while True:
            try:
                data = await websocket.receive_json()
            except ValueError as e:
                # JSON 파싱 오류
                logger.error(f"Invalid JSON from user {user_id}: {e}")
                await message_handler.send_error(websocket, "invalid_json", "Invalid message format")
                continue

            await message_handler.handle_message(websocket, data, session_factory)

    except WebSocketDisconnect:
        # 정상적인 연결 해제
        log_websocket_event(logger, "disconnect", user_id)

    finally:
        # 4. 연결 해제 처리
        await manager.disconnect(websocket)


@router.get("/rooms/{room_id}/status")
async def get_room_status(
    room_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
) -> dict:
    """
    채팅방 채널의 현재 구독 상태를 조회합니다. (참여자 전용)
    """
    await room_service.require_participant(db, room_id, current_user.id)

    channel = room_channel(room_id)
    return {
        "room_id": room_id,
        "channel": channel,
        "connected_users": manager.get_channel_users(channel),
        "session_count": manager.get_subscriber_count(channel),
        "timestamp": datetime.utcnow()
    }
