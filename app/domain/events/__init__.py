"""
Domain Events

모든 Domain Event의 기본 클래스 및 이벤트 정의
"""

from .base import DomainEvent
from .user_events import UserStatusUpdated
from .message_events import MessageSent, MessageUpdated, MessageReactionUpdated, MessageDeleted

__all__ = [
    'DomainEvent',
    'UserStatusUpdated',
    'MessageSent',
    'MessageUpdated',
    'MessageReactionUpdated',
    'MessageDeleted',
]
