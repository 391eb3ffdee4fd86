from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Message:
    id: int
    text: str
    sender_id: str
    receiver_id: str
    topic_id: str
    created_at: datetime
    client_msg_id: UUID | None = None

    def involves(self, user_id: str) -> bool:
        return user_id in (self.sender_id, self.receiver_id)

    def counterpart_of(self, user_id: str) -> str:
        """Return whichever participant is not ``user_id``."""
        return self.receiver_id if self.sender_id == user_id else self.sender_id

    def is_between(self, user_a: str, user_b: str) -> bool:
        return {self.sender_id, self.receiver_id} == {user_a, user_b}
