"""WebSocket envelopes exchanged with browser tabs.

Every frame is ``{"type": ..., "data": {...}}``. Inbound types are the
commands a tab may issue; outbound types are what the gateway emits.
"""
from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel


class InboundType(StrEnum):
    JOIN = "join"
    SEND_MESSAGE = "sendMessage"
    PING = "ping"


class OutboundType(StrEnum):
    JOINED = "joined"
    RECEIVE_MESSAGE = "receiveMessage"
    ERROR = "error"
    PONG = "pong"


class ErrorCode(StrEnum):
    INVALID_PAYLOAD = "invalid_payload"
    INVALID_DATA = "invalid_data"
    UNKNOWN_TYPE = "unknown_type"
    UNKNOWN_MESSAGE = "unknown_message"
    FORBIDDEN = "forbidden"
    PUBLISH_FAILED = "publish_failed"


class WsInbound(BaseModel):
    """Client -> server. ``type`` stays a plain string so unknown commands can be reported."""

    type: str
    data: dict[str, Any] = {}


class WsOutbound(BaseModel):
    """Server -> client."""

    type: OutboundType
    data: dict[str, Any] = {}

    @classmethod
    def error(cls, code: ErrorCode, **extra: Any) -> WsOutbound:
        return cls(type=OutboundType.ERROR, data={"code": code.value, **extra})
