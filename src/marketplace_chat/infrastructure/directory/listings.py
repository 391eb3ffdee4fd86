"""Listing existence collaborators."""
from __future__ import annotations

import logging

import httpx

from marketplace_chat.application.exceptions import TransportError

logger = logging.getLogger(__name__)


class AnyListingDirectory:
    """Accepts every non-empty listing id. Used when no listings API is configured."""

    async def exists(self, topic_id: str) -> bool:
        return bool(topic_id)


class StaticListingDirectory:
    def __init__(self, listing_ids: set[str] | None = None) -> None:
        self._ids = set(listing_ids or ())

    def add(self, topic_id: str) -> None:
        self._ids.add(topic_id)

    async def exists(self, topic_id: str) -> bool:
        return topic_id in self._ids


class HttpListingDirectory:
    """Asks the marketplace listings API: ``GET {base_url}/{topic_id}``."""

    def __init__(self, base_url: str, *, client: httpx.AsyncClient | None = None, timeout: float = 5.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def exists(self, topic_id: str) -> bool:
        try:
            resp = await self._client.get(f"{self._base_url}/{topic_id}")
        except httpx.HTTPError as exc:
            logger.warning("Listings API unreachable: %s", exc)
            raise TransportError("Listings service unavailable") from exc
        if resp.status_code == 404:
            return False
        if resp.is_error:
            raise TransportError(f"Listings service returned {resp.status_code}")
        return True

    async def aclose(self) -> None:
        await self._client.aclose()
