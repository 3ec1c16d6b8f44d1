# Makes 'models' a package and simplifies imports

from .base import BaseModel, metadata
from .buddy_link import BuddyLink
from .buddy_request import BuddyRequest
from .conversation import Conversation
from .message import Message
from .user import User

__all__ = [
    "BaseModel",
    "metadata",
    "User",
    "BuddyLink",
    "BuddyRequest",
    "Conversation",
    "Message",
]
