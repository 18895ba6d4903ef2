from .users import User
from .rooms import Room
from .participants import Participant, Role
from .messages import Message
from .revoked_tokens import RevokedToken

__all__ = [
    "User",
    "Room",
    "Participant",
    "Role",
    "Message",
    "RevokedToken",
]
