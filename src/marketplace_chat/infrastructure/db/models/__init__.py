"""Import all models so metadata.create_all can discover them via Base.metadata."""
from marketplace_chat.infrastructure.db.models.message import MessageModel

__all__ = [
    "MessageModel",
]
