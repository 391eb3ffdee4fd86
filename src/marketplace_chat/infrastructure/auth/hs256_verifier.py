from __future__ import annotations

import jwt

from marketplace_chat.application.dto.principal import Principal
from marketplace_chat.application.exceptions import AuthError


class HS256Verifier:
    """Verify JWTs signed with a shared HS256 secret."""

    def __init__(self, secret: str, algorithm: str = "HS256") -> None:
        self._secret = secret
        self._algorithm = algorithm

    async def verify(self, token: str) -> Principal:
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.PyJWTError as exc:
            raise AuthError(str(exc)) from exc
        return principal_from_claims(payload)


def principal_from_claims(payload: dict) -> Principal:
    sub = payload.get("sub") or payload.get("id")
    if not sub:
        raise AuthError("Token has no subject")
    return Principal(user_id=str(sub))
