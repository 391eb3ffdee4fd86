"""HTTP clients for the conversations API."""
from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

import httpx

from marketplace_chat.application.exceptions import (
    AuthError,
    NotFoundError,
    TransportError,
    ValidationError,
)
from marketplace_chat.domain.entities.message import Message
from marketplace_chat.infrastructure.bus.serializer import message_from_dict

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1/conversations"


def _raise_for_status(resp: httpx.Response) -> None:
    if not resp.is_error:
        return
    try:
        detail = resp.json().get("detail", "")
    except ValueError:
        detail = resp.text
    if resp.status_code == 400:
        raise ValidationError(detail)
    if resp.status_code == 401:
        raise AuthError(detail)
    if resp.status_code == 404:
        raise NotFoundError(detail)
    raise TransportError(f"HTTP {resp.status_code}: {detail}")


class HttpMessageStore:
    """Implements application.ports.store.MessageStore over the REST API."""

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._headers = {"Authorization": f"Bearer {token}"}

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            resp = await self._client.request(method, url, headers=self._headers, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            raise TransportError(str(exc) or exc.__class__.__name__) from exc
        _raise_for_status(resp)
        return resp.json()

    async def persist(
        self,
        text: str,
        receiver_id: str,
        topic_id: str,
        *,
        client_msg_id: UUID | None = None,
    ) -> Message:
        body: dict[str, Any] = {"text": text, "receiverId": receiver_id}
        if client_msg_id is not None:
            body["clientMsgId"] = str(client_msg_id)
        data = await self._request("POST", f"{API_PREFIX}/{topic_id}", json=body)
        return message_from_dict(data)

    async def query_by_topic(self, topic_id: str) -> list[Message]:
        data = await self._request("GET", f"{API_PREFIX}/{topic_id}")
        return [message_from_dict(item) for item in data]

    async def aclose(self) -> None:
        await self._client.aclose()
