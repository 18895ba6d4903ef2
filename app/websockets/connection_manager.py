from typing import Any, Dict, List, Set
from fastapi import WebSocket
import logging

logger = logging.getLogger(__name__)


class ConnectionManager:
    """채널 단위 WebSocket 구독 관리

    한 사용자가 여러 세션(탭)을 가질 수 있으며, 브로드캐스트는
    채널을 구독 중인 모든 세션에 전달됩니다 (보낸 사람 세션 포함).
    """

    def __init__(self):
        # 채널별 구독 세션: {channel: {websocket, ...}}
        self.channel_connections: Dict[str, Set[WebSocket]] = {}
        # WebSocket별 연결 정보: {websocket: {"user_id": int, "channels": set}}
        self.connection_info: Dict[WebSocket, Dict[str, Any]] = {}

    async def connect(self, websocket: WebSocket, user_id: int):
        """새로운 WebSocket 연결을 등록합니다."""
        await websocket.accept()
        self.connection_info[websocket] = {"user_id": user_id, "channels": set()}
        logger.info(f"User {user_id} connected ({self.get_session_count(user_id)} sessions)")

    async def disconnect(self, websocket: WebSocket):
        """WebSocket 연결을 해제하고 모든 구독을 정리합니다."""
        info = self.connection_info.pop(websocket, None)
        if info is None:
            return

        for channel in list(info["channels"]):
            self._remove_from_channel(websocket, channel)

        logger.info(f"User {info['user_id']} disconnected")

    def subscribe(self, websocket: WebSocket, channel: str) -> bool:
        """채널 구독. 등록되지 않은 연결이면 False"""
        info = self.connection_info.get(websocket)
        if info is None:
            return False

        self.channel_connections.setdefault(channel, set()).add(websocket)
        info["channels"].add(channel)
        return True

    def unsubscribe(self, websocket: WebSocket, channel: str):
        info = self.connection_info.get(websocket)
        if info is not None:
            info["channels"].discard(channel)
        self._remove_from_channel(websocket, channel)

    def _remove_from_channel(self, websocket: WebSocket, channel: str):
        subscribers = self.channel_connections.get(channel)
        if subscribers is None:
            return
        subscribers.discard(websocket)
        # 구독자가 없으면 채널 자체를 제거
        if not subscribers:
            del self.channel_connections[channel]

    async def send_personal_json(self, websocket: WebSocket, data: dict):
        """특정 세션에 JSON 데이터를 전송합니다."""
        try:
            await websocket.send_json(data)
        except Exception as e:
            logger.error(f"Failed to send JSON to session: {e}")
            await self.disconnect(websocket)

    async def broadcast(self, channel: str, data: dict) -> int:
        """채널의 모든 구독 세션에 그대로 전달하고 전달된 세션 수를 반환합니다.

        전달 실패한 세션은 연결을 정리합니다 (재전송 없음).
        """
        subscribers = self.channel_connections.get(channel)
        if not subscribers:
            return 0

        delivered = 0
        disconnected = []

        for websocket in list(subscribers):
            try:
                await websocket.send_json(data)
                delivered += 1
            except Exception as e:
                logger.error(f"Failed to deliver to a session on {channel}: {e}")
                disconnected.append(websocket)

        for websocket in disconnected:
            await self.disconnect(websocket)

        return delivered

    def get_channel_users(self, channel: str) -> List[int]:
        """채널을 구독 중인 사용자 ID 목록"""
        subscribers = self.channel_connections.get(channel, set())
        return sorted({self.connection_info[ws]["user_id"] for ws in subscribers if ws in self.connection_info})

    def get_subscriber_count(self, channel: str) -> int:
        return len(self.channel_connections.get(channel, ()))

    def get_session_count(self, user_id: int) -> int:
        return sum(1 for info in self.connection_info.values() if info["user_id"] == user_id)


# 전역 연결 매니저 인스턴스
manager = ConnectionManager()
