from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from marketplace_chat.api.deps import BrokerDep, UoWFactory, UoWFactoryDep, get_verifier
from marketplace_chat.application.dto.principal import Principal
from marketplace_chat.config import settings
from marketplace_chat.infrastructure.ws.protocol import (
    ErrorCode,
    InboundType,
    OutboundType,
    WsInbound,
    WsOutbound,
)
from marketplace_chat.infrastructure.ws.session import GatewaySession
from marketplace_chat.services import message_service

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])

# messages.id is a BIGINT identity.
_MAX_MESSAGE_ID = 2**63 - 1


async def _authenticate(token: str) -> Principal | None:
    try:
        verifier = get_verifier()
        return await verifier.verify(token)
    except Exception:
        logger.debug("WS auth failed", exc_info=True)
        return None


@router.websocket("/ws/chat")
async def ws_chat(
    websocket: WebSocket,
    broker: BrokerDep,
    uow_factory: UoWFactoryDep,
    token: str = Query(...),
) -> None:
    principal = await _authenticate(token)
    if principal is None:
        await websocket.close(code=4001, reason="Authentication failed")
        return

    await websocket.accept()
    session = GatewaySession(websocket, principal, broker)

    heartbeat_task = asyncio.create_task(
        _heartbeat(websocket), name=f"ws-heartbeat-{principal.user_id}",
    )
    try:
        await _read_loop(websocket, session, uow_factory)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS error for %s", principal.user_id)
    finally:
        heartbeat_task.cancel()
        await session.close()


async def _heartbeat(ws: WebSocket) -> None:
    interval = settings.WS_HEARTBEAT_SECONDS
    try:
        while True:
            await asyncio.sleep(interval)
            await ws.send_text(WsOutbound(type=OutboundType.PONG).model_dump_json())
    except asyncio.CancelledError:
        pass
    except Exception:
        pass


async def _read_loop(ws: WebSocket, session: GatewaySession, uow_factory: UoWFactory) -> None:
    while True:
        raw = await ws.receive_text()
        try:
            msg = WsInbound.model_validate_json(raw)
        except Exception:
            await session.send_error(ErrorCode.INVALID_PAYLOAD)
            continue

        if msg.type == InboundType.PING:
            await session.send(OutboundType.PONG, {})

        elif msg.type == InboundType.JOIN:
            await _handle_join(session, msg.data)

        elif msg.type == InboundType.SEND_MESSAGE:
            await _handle_send(session, msg.data, uow_factory)

        else:
            await session.send_error(ErrorCode.UNKNOWN_TYPE, type=msg.type)


async def _handle_join(session: GatewaySession, data: dict[str, Any]) -> None:
    user_id = data.get("userId")
    if not user_id:
        await session.send_error(ErrorCode.INVALID_DATA, detail="userId is required")
        return
    if str(user_id) != session.user_id:
        await session.send_error(ErrorCode.FORBIDDEN, detail="Cannot join another user's channel")
        return
    session.join(session.user_id)
    await session.send(OutboundType.JOINED, {"userId": session.user_id})


async def _handle_send(session: GatewaySession, data: dict[str, Any], uow_factory: UoWFactory) -> None:
    """Relay an already-persisted message to the broker.

    The payload only names the message; what gets published is the stored
    record, so nothing unpersisted or forged ever reaches other sessions.
    """
    payload = data.get("message")
    try:
        message_id = int(payload["id"])
    except (TypeError, KeyError, ValueError):
        await session.send_error(ErrorCode.INVALID_DATA, detail="message.id is required")
        return

    if not 0 < message_id <= _MAX_MESSAGE_ID:
        await session.send_error(ErrorCode.UNKNOWN_MESSAGE, id=message_id)
        return

    try:
        async with uow_factory() as uow:
            stored = await message_service.get_message(message_id, uow)
    except Exception:
        logger.exception("Lookup of message %s failed", message_id)
        await session.send_error(ErrorCode.PUBLISH_FAILED, id=message_id)
        return

    if stored is None:
        await session.send_error(ErrorCode.UNKNOWN_MESSAGE, id=message_id)
        return
    if stored.sender_id != session.user_id:
        await session.send_error(ErrorCode.FORBIDDEN, detail="Not the sender of this message")
        return

    try:
        await session.publish(stored)
    except Exception:
        # Delivery is best effort; the store already has the message.
        logger.exception("Broker publish failed for message %s", stored.id)
        await session.send_error(ErrorCode.PUBLISH_FAILED, id=stored.id)
