"""Usage counter adjustments, applied outside the chat transaction."""

import logging

from src.db import queries

logger = logging.getLogger(__name__)


async def increment_usage(db, user_id: str, kind: str, amount: int) -> None:
    logger.info("Incrementing usage for %s by %d", kind, amount)
    await queries.increment_usage(db, user_id, kind, amount)


async def decrement_usage(db, user_id: str, kind: str, amount: int) -> None:
    logger.info("Decrementing usage for %s by %d", kind, amount)
    await queries.decrement_usage(db, user_id, kind, amount)
