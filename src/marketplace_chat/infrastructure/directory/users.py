"""User directory collaborators: user id -> display name and avatar."""
from __future__ import annotations

import asyncio
import logging
from typing import Iterable

import httpx

from marketplace_chat.application.dto.profile import UserProfile

logger = logging.getLogger(__name__)


class InMemoryUserDirectory:
    def __init__(self, profiles: Iterable[UserProfile] = ()) -> None:
        self._profiles = {p.user_id: p for p in profiles}

    def add(self, profile: UserProfile) -> None:
        self._profiles[profile.user_id] = profile

    async def resolve(self, user_ids: Iterable[str]) -> dict[str, UserProfile]:
        return {uid: self._profiles.get(uid) or UserProfile.fallback(uid) for uid in set(user_ids)}


class HttpUserDirectory:
    """Reads ``GET {base_url}/{user_id}`` from the marketplace users API.

    Profiles are cosmetic, so lookup failures degrade to a fallback name
    instead of failing the conversation load.
    """

    def __init__(self, base_url: str, *, client: httpx.AsyncClient | None = None, timeout: float = 5.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._cache: dict[str, UserProfile] = {}

    async def resolve(self, user_ids: Iterable[str]) -> dict[str, UserProfile]:
        wanted = set(user_ids)
        missing = [uid for uid in wanted if uid not in self._cache]
        fetched = await asyncio.gather(*(self._fetch(uid) for uid in missing))
        for profile in fetched:
            if profile is not None:
                self._cache[profile.user_id] = profile
        return {uid: self._cache.get(uid) or UserProfile.fallback(uid) for uid in wanted}

    async def _fetch(self, user_id: str) -> UserProfile | None:
        try:
            resp = await self._client.get(f"{self._base_url}/{user_id}")
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.debug("Profile lookup for %s failed: %s", user_id, exc)
            return None
        data = resp.json()
        return UserProfile(
            user_id=user_id,
            display_name=data.get("name") or data.get("username") or UserProfile.fallback(user_id).display_name,
            avatar_url=data.get("profileImage"),
        )

    async def aclose(self) -> None:
        await self._client.aclose()
