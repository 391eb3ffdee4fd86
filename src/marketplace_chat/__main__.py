"""Entrypoint: python -m marketplace_chat"""
from __future__ import annotations

import logging

import uvicorn

from marketplace_chat.api.middleware.correlation_id import CorrelationIdFilter
from marketplace_chat.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(request_id)s]: %(message)s"


def _configure_logging() -> None:
    handler = logging.StreamHandler()
    handler.addFilter(CorrelationIdFilter())
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.basicConfig(level=settings.LOG_LEVEL.upper(), handlers=[handler])


def main() -> None:
    _configure_logging()
    uvicorn.run(
        "marketplace_chat.app:create_app",
        factory=True,
        host=settings.APP_HOST,
        port=settings.APP_PORT,
        log_level=settings.LOG_LEVEL,
    )


if __name__ == "__main__":
    main()
