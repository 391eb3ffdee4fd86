from __future__ import annotations

from enum import StrEnum


class ViewState(StrEnum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    SENDING = "sending"
    ERROR = "error"


class BrokerBackend(StrEnum):
    MEMORY = "memory"
    REDIS = "redis"
