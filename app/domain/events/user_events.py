"""
User Context Domain Events
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict
from .base import DomainEvent
from app.domain.channels import PRESENCE_CHANNEL


@dataclass
class UserStatusUpdated(DomainEvent):
    """온라인 상태 변경 이벤트"""
    user: Dict[str, Any]  # {id, name, is_online, last_seen_at}
    timestamp: datetime

    @property
    def channel(self) -> str:
        return PRESENCE_CHANNEL

    def payload(self) -> Dict[str, Any]:
        return {"user": self.user}
