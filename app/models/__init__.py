from app.models.message import StoredMessage
from app.models.user import ChatUser

__all__ = [
    "ChatUser",
    "StoredMessage",
]
