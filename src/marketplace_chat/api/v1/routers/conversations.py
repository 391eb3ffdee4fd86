from __future__ import annotations

from fastapi import APIRouter

from marketplace_chat.api.deps import CurrentPrincipal, ListingsDep, UoWDep
from marketplace_chat.api.v1.schemas.conversation import ConversationSummaryResponse
from marketplace_chat.api.v1.schemas.message import MessageResponse, SendMessageRequest
from marketplace_chat.config import settings
from marketplace_chat.services import conversation_service, message_service

router = APIRouter(prefix="/api/v1/conversations", tags=["conversations"])


@router.get("", response_model=list[ConversationSummaryResponse])
async def list_conversations(
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> list[ConversationSummaryResponse]:
    convs = await conversation_service.list_user_conversations(principal, uow)
    return [ConversationSummaryResponse.from_entity(c) for c in convs]


@router.get("/{topic_id}", response_model=list[MessageResponse])
async def list_topic_messages(
    topic_id: str,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> list[MessageResponse]:
    messages = await message_service.query_visible(
        topic_id,
        principal.user_id,
        uow,
        expose_topic_history=settings.EXPOSE_TOPIC_HISTORY,
    )
    return [MessageResponse.from_entity(m) for m in messages]


@router.post("/{topic_id}", response_model=MessageResponse, status_code=201)
async def send_message(
    topic_id: str,
    body: SendMessageRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
    listings: ListingsDep,
) -> MessageResponse:
    msg = await message_service.persist(
        body.text,
        principal.user_id,
        body.receiver_id,
        topic_id,
        uow,
        listings,
        client_msg_id=body.client_msg_id,
        max_length=settings.MESSAGE_MAX_LENGTH,
    )
    return MessageResponse.from_entity(msg)
