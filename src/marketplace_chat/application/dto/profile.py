from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class UserProfile:
    user_id: str
    display_name: str
    avatar_url: str | None = None

    @classmethod
    def fallback(cls, user_id: str) -> UserProfile:
        """Placeholder used when the directory does not know the user."""
        return cls(user_id=user_id, display_name=user_id[-6:])
