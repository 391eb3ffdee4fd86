"""Merging persisted history with live broker events, one open conversation at a time."""
from __future__ import annotations

import logging
from typing import Iterable, Iterator
from uuid import UUID

from marketplace_chat.application.dto.profile import UserProfile
from marketplace_chat.domain.entities.conversation import Conversation
from marketplace_chat.domain.entities.message import Message
from marketplace_chat.domain.services.conversation_index import (
    build_conversation_index,
    conversation_key,
)
from marketplace_chat.domain.value_objects.enums import ViewState
from marketplace_chat.domain.value_objects.ids import ConversationKey

logger = logging.getLogger(__name__)


class InvalidTransition(RuntimeError):
    pass


class ConversationView:
    """Local, arrival-ordered view of one (topic, counterpart) conversation.

    UNINITIALIZED -> LOADING -> READY <-> SENDING, with ERROR reachable from
    LOADING or SENDING. ERROR after a failed send keeps the loaded history,
    still takes live events and allows another send; ERROR after a failed
    load needs a reload. The failure text is kept in ``error``. Messages are never
    inserted before the store has acknowledged them, and each store id
    appears at most once.
    """

    def __init__(self, user_id: str, topic_id: str, counterpart_id: str) -> None:
        self.user_id = user_id
        self.topic_id = topic_id
        self.counterpart_id = counterpart_id
        self.state = ViewState.UNINITIALIZED
        self.error: str | None = None
        self.profiles: dict[str, UserProfile] = {}
        self._messages: list[Message] = []
        self._ids: set[int] = set()
        self._early: list[Message] = []
        self._pending: set[UUID] = set()
        self._loaded = False

    @property
    def key(self) -> ConversationKey:
        return ConversationKey(self.topic_id, self.counterpart_id)

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    @property
    def pending(self) -> frozenset[UUID]:
        """Correlation ids of sends the store has not acknowledged yet."""
        return frozenset(self._pending)

    def matches(self, message: Message) -> bool:
        return message.topic_id == self.topic_id and message.is_between(self.user_id, self.counterpart_id)

    @property
    def can_send(self) -> bool:
        return self.state == ViewState.READY or (self.state == ViewState.ERROR and self._loaded)

    def begin_load(self) -> None:
        if self.state == ViewState.SENDING:
            raise InvalidTransition("Cannot reload while a send is in flight")
        self.state = ViewState.LOADING
        self.error = None
        self._loaded = False
        self._messages.clear()
        self._ids.clear()
        self._early.clear()

    def finish_load(self, history: Iterable[Message], profiles: dict[str, UserProfile]) -> None:
        """Install the fetched history, then whatever arrived live meanwhile."""
        self._require(ViewState.LOADING)
        for message in history:
            if self.matches(message):
                self._append(message)
        early, self._early = self._early, []
        for message in early:
            self._append(message)
        self.profiles = profiles
        self._loaded = True
        self.state = ViewState.READY

    def fail_load(self, error: str) -> None:
        self._require(ViewState.LOADING)
        self._early.clear()
        self.error = error
        self.state = ViewState.ERROR

    def begin_send(self, client_msg_id: UUID) -> None:
        if not self.can_send:
            raise InvalidTransition(f"Cannot send while view is {self.state}")
        self.error = None
        self._pending.add(client_msg_id)
        self.state = ViewState.SENDING

    def finish_send(self, client_msg_id: UUID, message: Message) -> bool:
        """Record the store's acknowledgement. False if a live echo got here first."""
        self._require(ViewState.SENDING)
        self._pending.discard(client_msg_id)
        self.state = ViewState.READY
        return self._append(message)

    def abort_send(self, client_msg_id: UUID, error: str) -> None:
        self._require(ViewState.SENDING)
        self._pending.discard(client_msg_id)
        self.error = error
        self.state = ViewState.ERROR

    def receive(self, message: Message) -> bool:
        """Apply a live event for this conversation. Returns True if it was new."""
        if not self.matches(message):
            return False
        if message.client_msg_id is not None:
            self._pending.discard(message.client_msg_id)
        if self.state == ViewState.LOADING:
            self._early.append(message)
            return True
        if not self._loaded:
            # History is not loaded; a later load will pick it up from the store.
            return False
        return self._append(message)

    def _append(self, message: Message) -> bool:
        if message.id in self._ids:
            return False
        self._ids.add(message.id)
        self._messages.append(message)
        return True

    def _require(self, state: ViewState) -> None:
        if self.state != state:
            raise InvalidTransition(f"Expected {state}, view is {self.state}")


class ConversationIndex:
    """Incrementally maintained (topic, counterpart) -> conversation map for one user."""

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        self._conversations: dict[ConversationKey, Conversation] = {}
        self._ids: set[int] = set()

    @classmethod
    def from_messages(cls, user_id: str, messages: Iterable[Message]) -> ConversationIndex:
        index = cls(user_id)
        index.reset(messages)
        return index

    def reset(self, messages: Iterable[Message]) -> None:
        self._conversations = build_conversation_index(messages, self.user_id)
        self._ids = {m.id for c in self._conversations.values() for m in c.messages}

    def apply(self, message: Message) -> bool:
        """Fold one message in. Returns True if it opened a conversation not seen before."""
        if not message.involves(self.user_id) or message.id in self._ids:
            return False
        self._ids.add(message.id)
        key = conversation_key(message, self.user_id)
        conv = self._conversations.get(key)
        created = conv is None
        if conv is None:
            conv = self._conversations[key] = Conversation(key.topic_id, key.counterpart_id)
        conv.messages.append(message)
        return created

    def get(self, key: ConversationKey) -> Conversation | None:
        return self._conversations.get(key)

    def keys(self) -> set[ConversationKey]:
        return set(self._conversations)

    def __contains__(self, key: object) -> bool:
        return key in self._conversations

    def __len__(self) -> int:
        return len(self._conversations)

    def __iter__(self) -> Iterator[Conversation]:
        return iter(list(self._conversations.values()))
