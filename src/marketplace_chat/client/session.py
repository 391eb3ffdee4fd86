"""One connected client session: a broker subscription, an index and an open view."""
from __future__ import annotations

import asyncio
import logging
import uuid
from types import TracebackType
from typing import Iterable, Self

from marketplace_chat.application.exceptions import AppError
from marketplace_chat.application.ports.bus import Broker, Subscription
from marketplace_chat.application.ports.directory import UserDirectory
from marketplace_chat.application.ports.store import MessageStore
from marketplace_chat.client.reconciler import ConversationIndex, ConversationView
from marketplace_chat.domain.entities.message import Message

logger = logging.getLogger(__name__)


class ChatSession:
    """Client-side reconciler for a single tab/device of ``user_id``.

    The store is the only source of truth. Live events only make the local
    state fresher; anything missed while disconnected is recovered by
    opening the conversation again.
    """

    def __init__(
        self,
        user_id: str,
        store: MessageStore,
        broker: Broker,
        users: UserDirectory,
    ) -> None:
        self.user_id = user_id
        self._store = store
        self._broker = broker
        self._users = users
        self.index = ConversationIndex(user_id)
        self.view: ConversationView | None = None
        self._subscription: Subscription | None = None
        self._listener: asyncio.Task[None] | None = None

    @property
    def connected(self) -> bool:
        return self._subscription is not None and not self._subscription.closed

    async def connect(self) -> None:
        if self.connected:
            return
        self._subscription = self._broker.subscribe(self.user_id)
        self._listener = asyncio.create_task(
            self._listen(self._subscription), name=f"chat-session-{self.user_id}",
        )

    async def disconnect(self) -> None:
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None
        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.disconnect()

    async def load_index(self, topic_ids: Iterable[str]) -> ConversationIndex:
        """Rebuild the conversation index from scratch out of the given topics."""
        messages: list[Message] = []
        for topic_id in dict.fromkeys(topic_ids):
            messages.extend(await self._store.query_by_topic(topic_id))
        self.index.reset(messages)
        return self.index

    async def open(self, topic_id: str, counterpart_id: str) -> ConversationView:
        """Open (or re-open) a conversation, always re-reading the store."""
        view = ConversationView(self.user_id, topic_id, counterpart_id)
        self.view = view
        view.begin_load()
        try:
            history = await self._store.query_by_topic(topic_id)
            pair = [m for m in history if view.matches(m)]
            participant_ids = {self.user_id, counterpart_id}
            participant_ids.update(m.sender_id for m in pair)
            profiles = await self._users.resolve(participant_ids)
        except AppError as exc:
            logger.info("Loading %s failed: %s", view.key, exc.detail)
            view.fail_load(exc.detail or exc.__class__.__name__)
            return view
        view.finish_load(pair, profiles)
        for message in view.messages:
            self.index.apply(message)
        return view

    async def send(self, text: str) -> Message | None:
        """Persist, append and publish. Returns None when the send failed.

        A failed persist leaves the view in ERROR with ``view.error`` set; the
        caller may send again. Nothing is retried automatically.
        """
        view = self.view
        if view is None or not view.can_send:
            raise RuntimeError("No conversation ready for sending")

        client_msg_id = uuid.uuid4()
        view.begin_send(client_msg_id)
        try:
            message = await self._store.persist(
                text,
                view.counterpart_id,
                view.topic_id,
                client_msg_id=client_msg_id,
            )
        except AppError as exc:
            view.abort_send(client_msg_id, exc.detail or exc.__class__.__name__)
            return None
        except BaseException:
            view.abort_send(client_msg_id, "Send failed")
            raise

        view.finish_send(client_msg_id, message)
        self.index.apply(message)
        try:
            await self._broker.publish(message)
        except Exception as exc:
            # Persisted already; other sessions will see it on their next load.
            logger.warning("Publish of message %s failed: %s", message.id, exc)
            view.error = "Message saved but live delivery failed"
        return message

    def handle_event(self, message: Message) -> None:
        """Route one live event to the open view or to the index."""
        view = self.view
        if view is not None and view.matches(message):
            view.receive(message)
        if self.index.apply(message):
            logger.debug("New conversation %s/%s", message.topic_id, message.counterpart_of(self.user_id))

    async def _listen(self, subscription: Subscription) -> None:
        async for message in subscription:
            try:
                self.handle_event(message)
            except Exception:
                logger.exception("Failed to apply live message %s", message.id)
