"""Unit-of-work scope for multi-step writes.

PostgREST executes every request in its own transaction, so a sequence of
calls cannot share one. ``transaction()`` gives the sequence all-or-nothing
behaviour instead: each mutating query run through a ``Transaction`` records
how to undo itself, and if the block raises the undo actions run newest first
before the error is re-raised.
"""

import logging
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

logger = logging.getLogger(__name__)

Compensation = Callable[[], Awaitable[Any]]


class Transaction:
    def __init__(self, db: Any):
        self.db = db
        self._compensations: list[tuple[str, Compensation]] = []
        self.rolled_back = False

    def on_rollback(self, description: str, action: Compensation) -> None:
        self._compensations.append((description, action))

    async def rollback(self) -> None:
        self.rolled_back = True
        while self._compensations:
            description, action = self._compensations.pop()
            try:
                await action()
            except Exception:
                logger.exception("Rollback step failed: %s", description)


def client_of(db_or_tx: Any) -> Any:
    """Return the raw client for either a client or a Transaction."""
    return db_or_tx.db if isinstance(db_or_tx, Transaction) else db_or_tx


def register_rollback(db_or_tx: Any, description: str, action: Compensation) -> None:
    if isinstance(db_or_tx, Transaction):
        db_or_tx.on_rollback(description, action)


@asynccontextmanager
async def transaction(db: Any) -> AsyncGenerator[Transaction, None]:
    """Run a block of queries as one unit.

    Example:
        async with transaction(db) as tx:
            await queries.create_thread(tx, thread_id=..., user_id=...)
            await queries.update_thread(tx, thread_id, status="streaming")
    """
    tx = Transaction(db)
    try:
        yield tx
    except BaseException:
        logger.info("Rolling back transaction")
        await tx.rollback()
        raise
