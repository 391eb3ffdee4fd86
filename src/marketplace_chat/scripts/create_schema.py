"""One-time script: create the messages table and its indexes."""
from __future__ import annotations

import asyncio
import logging

from marketplace_chat.infrastructure.db import models  # noqa: F401
from marketplace_chat.infrastructure.db.base import Base
from marketplace_chat.infrastructure.db.session import engine

logger = logging.getLogger(__name__)


async def create_schema() -> None:
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Created tables: %s", ", ".join(sorted(Base.metadata.tables)))
    finally:
        await engine.dispose()


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    asyncio.run(create_schema())


if __name__ == "__main__":
    main()
