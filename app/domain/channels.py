"""
실시간 채널 이름 규칙

- room:{room_id}   : 채팅방 단위 이벤트 (메시지 전송/수정/삭제/반응)
- presence:users   : 전체 사용자 온라인 상태
"""

from typing import Optional

ROOM_CHANNEL_PREFIX = "room:"
PRESENCE_CHANNEL = "presence:users"


def room_channel(room_id: int) -> str:
    return f"{ROOM_CHANNEL_PREFIX}{room_id}"


def parse_room_channel(channel: str) -> Optional[int]:
    """room:{id} 형식이면 room_id, 아니면 None"""
    if not channel or not channel.startswith(ROOM_CHANNEL_PREFIX):
        return None
    try:
        room_id = int(channel[len(ROOM_CHANNEL_PREFIX):])
    except ValueError:
        return None
    return room_id if room_id > 0 else None


def is_known_channel(channel: str) -> bool:
    return channel == PRESENCE_CHANNEL or parse_room_channel(channel) is not None
