"""
WebSocket 실시간 알림 모듈

이 모듈은 FastAPI WebSocket을 사용하여 채널 단위 실시간 이벤트를 전달합니다.

주요 구성 요소:
- connection_manager: WebSocket 연결과 채널 구독 관리
- broadcaster: 도메인 이벤트 발행 (memory / redis pub/sub), app.websockets.broadcaster 에서 import
- auth: WebSocket 인증 및 채널 권한 확인
- handlers: 클라이언트 프레임(subscribe/unsubscribe/ping) 처리
"""

from .connection_manager import manager, ConnectionManager
from .auth import authenticate_websocket, verify_channel_access
from .handlers import message_handler, WebSocketMessageHandler

__all__ = [
    "manager",
    "ConnectionManager",
    "authenticate_websocket",
    "verify_channel_access",
    "message_handler",
    "WebSocketMessageHandler"
]
