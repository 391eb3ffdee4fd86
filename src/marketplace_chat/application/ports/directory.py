from __future__ import annotations

from typing import Iterable, Protocol

from marketplace_chat.application.dto.profile import UserProfile


class ListingDirectory(Protocol):
    async def exists(self, topic_id: str) -> bool: ...


class UserDirectory(Protocol):
    async def resolve(self, user_ids: Iterable[str]) -> dict[str, UserProfile]:
        """Return a profile for every requested id (fallbacks for unknown ones)."""
        ...
