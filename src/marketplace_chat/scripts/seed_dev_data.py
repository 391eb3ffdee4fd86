"""Seed development data: a buyer/seller exchange on one listing plus a second buyer."""
from __future__ import annotations

import asyncio
import logging

from marketplace_chat.infrastructure.db.session import AsyncSessionLocal
from marketplace_chat.infrastructure.db.uow import SqlAlchemyUoW
from marketplace_chat.infrastructure.directory.listings import AnyListingDirectory
from marketplace_chat.services import message_service

logger = logging.getLogger(__name__)

LISTING_ID = "listing-desk-lamp"

MESSAGES = [
    ("buyer-1", "seller-1", "Hi, is the desk lamp still available?"),
    ("seller-1", "buyer-1", "Yes! Pickup near the library works for me."),
    ("buyer-1", "seller-1", "Great, could you do $10?"),
    ("buyer-2", "seller-1", "Is it available?"),
]


async def seed() -> None:
    listings = AnyListingDirectory()
    async with AsyncSessionLocal() as session:
        uow = SqlAlchemyUoW(session)
        for sender_id, receiver_id, text in MESSAGES:
            await message_service.persist(text, sender_id, receiver_id, LISTING_ID, uow, listings)
    logger.info("Seeded listing %s with %d messages", LISTING_ID, len(MESSAGES))


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    asyncio.run(seed())


if __name__ == "__main__":
    main()
