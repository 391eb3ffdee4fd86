"""FastAPI dependency injection helpers."""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Annotated, AsyncContextManager, AsyncIterator, Callable

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.requests import HTTPConnection

from marketplace_chat.application.dto.principal import Principal
from marketplace_chat.application.exceptions import AuthError
from marketplace_chat.application.ports.auth import TokenVerifier
from marketplace_chat.application.ports.bus import Broker
from marketplace_chat.application.ports.directory import ListingDirectory
from marketplace_chat.application.uow import UnitOfWork
from marketplace_chat.config import settings
from marketplace_chat.infrastructure.auth.hs256_verifier import HS256Verifier
from marketplace_chat.infrastructure.auth.jwks_verifier import JWKSVerifier
from marketplace_chat.infrastructure.db.session import AsyncSessionLocal
from marketplace_chat.infrastructure.db.uow import SqlAlchemyUoW

_bearer_scheme = HTTPBearer(auto_error=False)

UoWFactory = Callable[[], AsyncContextManager[UnitOfWork]]


@asynccontextmanager
async def open_uow() -> AsyncIterator[SqlAlchemyUoW]:
    async with AsyncSessionLocal() as session:
        yield SqlAlchemyUoW(session)


async def get_uow() -> AsyncIterator[UnitOfWork]:
    async with open_uow() as uow:
        yield uow


UoWDep = Annotated[UnitOfWork, Depends(get_uow)]


def get_uow_factory() -> UoWFactory:
    """Short-lived units of work for long-lived connections (WebSocket)."""
    return open_uow


UoWFactoryDep = Annotated[UoWFactory, Depends(get_uow_factory)]


def get_broker(conn: HTTPConnection) -> Broker:
    return conn.app.state.broker


BrokerDep = Annotated[Broker, Depends(get_broker)]


def get_listings(conn: HTTPConnection) -> ListingDirectory:
    return conn.app.state.listings


ListingsDep = Annotated[ListingDirectory, Depends(get_listings)]


def _get_verifier() -> TokenVerifier:
    if settings.JWT_VERIFY_MODE == "jwks":
        assert settings.JWKS_URL, "JWKS_URL must be set when JWT_VERIFY_MODE=jwks"
        return JWKSVerifier(settings.JWKS_URL)
    return HS256Verifier(settings.JWT_SECRET, settings.JWT_ALGORITHM)


_verifier: TokenVerifier | None = None


def get_verifier() -> TokenVerifier:
    global _verifier  # noqa: PLW0603
    if _verifier is None:
        _verifier = _get_verifier()
    return _verifier


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)],
) -> Principal:
    if credentials is None:
        raise AuthError("Not authenticated")
    return await get_verifier().verify(credentials.credentials)


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
