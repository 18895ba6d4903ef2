"""
Message Context Domain Events

payload의 message/user 값은 JSON 직렬화가 끝난 dict 입니다.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict
from .base import DomainEvent
from app.domain.channels import room_channel


@dataclass
class MessageSent(DomainEvent):
    """메시지 전송 이벤트"""
    room_id: int
    message: Dict[str, Any]
    sender: Dict[str, Any]
    timestamp: datetime

    @property
    def channel(self) -> str:
        return room_channel(self.room_id)

    def payload(self) -> Dict[str, Any]:
        return {"message": self.message, "sender": self.sender}


@dataclass
class MessageUpdated(DomainEvent):
    """메시지 수정 이벤트 (message 안에 수정한 사용자 정보 포함)"""
    room_id: int
    message: Dict[str, Any]
    user: Dict[str, Any]
    timestamp: datetime

    @property
    def channel(self) -> str:
        return room_channel(self.room_id)

    def payload(self) -> Dict[str, Any]:
        return {"message": {**self.message, "user": self.user}, "user": self.user}


@dataclass
class MessageReactionUpdated(DomainEvent):
    """메시지 반응 변경 이벤트 (저장 후 다시 읽은 전체 메시지)"""
    room_id: int
    message: Dict[str, Any]
    timestamp: datetime

    @property
    def channel(self) -> str:
        return room_channel(self.room_id)

    def payload(self) -> Dict[str, Any]:
        return {"message": self.message}


@dataclass
class MessageDeleted(DomainEvent):
    """메시지 삭제 이벤트"""
    room_id: int
    message_id: int
    deleted_by: int
    timestamp: datetime

    @property
    def channel(self) -> str:
        return room_channel(self.room_id)

    def payload(self) -> Dict[str, Any]:
        return {"message_id": self.message_id, "room_id": self.room_id, "deleted_by": self.deleted_by}
