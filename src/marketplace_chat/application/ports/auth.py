from __future__ import annotations

from typing import Protocol

from marketplace_chat.application.dto.principal import Principal


class TokenVerifier(Protocol):
    """Turns a bearer token into the acting user.

    Shared by the REST routes (``Authorization`` header) and the WebSocket
    gateway (``?token=`` query). Implementations raise ``AuthError`` for
    anything that does not yield a user id; callers never see a partial
    principal.
    """

    async def verify(self, token: str) -> Principal: ...
