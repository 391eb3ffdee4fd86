from __future__ import annotations

from typing import NamedTuple


class ConversationKey(NamedTuple):
    topic_id: str
    counterpart_id: str
