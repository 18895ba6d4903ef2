from .user import (
    UserCreate,
    UserLogin,
    UserResponse,
    UserSummary,
    UserPresence,
    UserWithRooms,
    RoomSummary,
    AuthResponse,
    Token,
    OnlineStatusUpdate,
)
from .room import (
    RoomCreate,
    ParticipantAdd,
    ParticipantResponse,
    RoomResponse,
    RoomWithStats,
)
from .message import (
    MessageUpdate,
    ReactionRequest,
    AttachmentInfo,
    MessageResponse,
    MessageListResponse,
)

__all__ = [
    "UserCreate",
    "UserLogin",
    "UserResponse",
    "UserSummary",
    "UserPresence",
    "UserWithRooms",
    "RoomSummary",
    "AuthResponse",
    "Token",
    "OnlineStatusUpdate",
    "RoomCreate",
    "ParticipantAdd",
    "ParticipantResponse",
    "RoomResponse",
    "RoomWithStats",
    "MessageUpdate",
    "ReactionRequest",
    "AttachmentInfo",
    "MessageResponse",
    "MessageListResponse",
]
