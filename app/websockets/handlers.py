from datetime import datetime
from typing import Any, AsyncContextManager, Callable, Dict
from fastapi import WebSocket
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger, log_websocket_event
from app.domain.channels import is_known_channel
from app.websockets.auth import verify_channel_access
from app.websockets.connection_manager import manager

logger = get_logger(__name__)


def _timestamp() -> str:
    return datetime.utcnow().isoformat()


class WebSocketMessageHandler:
    """WebSocket 클라이언트 프레임 처리 핸들러

    클라이언트는 채널 구독 관리(subscribe/unsubscribe)와 ping 만 보냅니다.
    메시지 전송은 REST API 로만 이루어집니다.
    """

    @staticmethod
    async def handle_message(
        websocket: WebSocket,
        data: Dict[str, Any],
        session_factory: Callable[[], AsyncContextManager[AsyncSession]]
    ):
        """
        WebSocket으로 받은 프레임을 처리합니다.

        Args:
            websocket: WebSocket 연결 객체
            data: 클라이언트에서 전송한 프레임
            session_factory: 채널 권한 확인 때마다 새 세션을 여는 팩토리
        """
        if websocket not in manager.connection_info:
            logger.error("Message received from unregistered WebSocket connection")
            return

        user_id = manager.connection_info[websocket]["user_id"]
        message_type = data.get("type") if isinstance(data, dict) else None

        if message_type == "subscribe":
            await WebSocketMessageHandler._handle_subscribe(websocket, user_id, data.get("channel"), session_factory)
        elif message_type == "unsubscribe":
            await WebSocketMessageHandler._handle_unsubscribe(websocket, user_id, data.get("channel"))
        elif message_type == "ping":
            await WebSocketMessageHandler._handle_ping(websocket)
        else:
            logger.warning(f"Unknown message type: {message_type} from user {user_id}")
            await WebSocketMessageHandler.send_error(websocket, "unknown_type", "Unknown message type")

    @staticmethod
    async def _handle_subscribe(
        websocket: WebSocket,
        user_id: int,
        channel: Any,
        session_factory: Callable[[], AsyncContextManager[AsyncSession]]
    ):
        """채널 구독 (권한은 구독 시점의 참여 상태로 확인)"""
        if not isinstance(channel, str) or not is_known_channel(channel):
            await WebSocketMessageHandler.send_error(websocket, "unknown_channel", "Unknown channel", channel)
            return

        async with session_factory() as db:
            allowed = await verify_channel_access(db, user_id, channel)

        if not allowed:
            log_websocket_event(logger, "subscribe_denied", user_id, channel)
            await WebSocketMessageHandler.send_error(websocket, "channel_forbidden", "Access denied to this channel", channel)
            return

        manager.subscribe(websocket, channel)
        log_websocket_event(logger, "subscribe", user_id, channel)
        await manager.send_personal_json(websocket, {
            "type": "subscribed",
            "channel": channel,
            "timestamp": _timestamp()
        })

    @staticmethod
    async def _handle_unsubscribe(websocket: WebSocket, user_id: int, channel: Any):
        if not isinstance(channel, str):
            await WebSocketMessageHandler.send_error(websocket, "unknown_channel", "Unknown channel", channel)
            return

        manager.unsubscribe(websocket, channel)
        log_websocket_event(logger, "unsubscribe", user_id, channel)
        await manager.send_personal_json(websocket, {
            "type": "unsubscribed",
            "channel": channel,
            "timestamp": _timestamp()
        })

    @staticmethod
    async def _handle_ping(websocket: WebSocket):
        """Ping 메시지에 대한 Pong 응답"""
        await manager.send_personal_json(websocket, {
            "type": "pong",
            "timestamp": _timestamp()
        })

    @staticmethod
    async def send_error(websocket: WebSocket, error_code: str, message: str, channel: Any = None):
        payload = {
            "type": "error",
            "error_code": error_code,
            "message": message,
            "timestamp": _timestamp()
        }
        if channel is not None:
            payload["channel"] = channel
        await manager.send_personal_json(websocket, payload)


# 전역 메시지 핸들러 인스턴스
message_handler = WebSocketMessageHandler()
