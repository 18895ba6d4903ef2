"""
Services layer for data access and side effects.

This layer handles:
- Database queries and operations
- Uploaded file storage
- Presence updates
- Publishing realtime events after successful writes
"""

from . import auth_service
from . import file_service
from . import room_service
from . import message_service
from . import presence_service

__all__ = [
    "auth_service",
    "file_service",
    "room_service",
    "message_service",
    "presence_service"
]
