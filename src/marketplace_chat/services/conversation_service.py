from __future__ import annotations

from marketplace_chat.application.dto.principal import Principal
from marketplace_chat.application.uow import UnitOfWork
from marketplace_chat.domain.entities.conversation import Conversation
from marketplace_chat.domain.services.conversation_index import build_conversation_index
from marketplace_chat.services import message_service


async def list_user_conversations(
    principal: Principal,
    uow: UnitOfWork,
) -> list[Conversation]:
    """Rebuild the caller's conversation index from the store, newest activity first."""
    messages = await message_service.list_for_participant(principal.user_id, uow)
    index = build_conversation_index(messages, principal.user_id)
    return sorted(
        index.values(),
        key=lambda c: (c.messages[-1].created_at, c.messages[-1].id),
        reverse=True,
    )
