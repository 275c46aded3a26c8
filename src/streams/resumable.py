"""Fail-open wrappers around stream registration and resumption."""

import logging
from collections.abc import AsyncIterator

from src.config.settings import get_settings
from src.streams.context import get_stream_context
from src.utils.retry import retry_with_backoff

logger = logging.getLogger(__name__)


async def _empty_stream() -> AsyncIterator[str]:
    return
    yield


async def create_resumable_stream(stream_id: str, stream: AsyncIterator[str]) -> AsyncIterator[str]:
    """Register ``stream`` under ``stream_id``.

    Returns the original, non-resumable stream when registration keeps failing.
    """
    settings = get_settings()
    try:
        return await retry_with_backoff(
            lambda: get_stream_context().create_new_resumable_stream(stream_id, lambda: stream),
            retries=settings.STREAM_RETRY_ATTEMPTS,
            base_delay=settings.STREAM_RETRY_BASE_DELAY,
            operation_name="creating resumable stream",
        )
    except Exception:
        logger.warning("Falling back to a non-resumable stream for %s", stream_id)
        return stream


async def get_resumable_stream(stream_id: str) -> AsyncIterator[str] | None:
    """Reattach to ``stream_id``. Returns None when no stream can be resumed."""
    settings = get_settings()
    try:
        return await retry_with_backoff(
            lambda: get_stream_context().resumable_stream(stream_id, _empty_stream),
            retries=settings.STREAM_RETRY_ATTEMPTS,
            base_delay=settings.STREAM_RETRY_BASE_DELAY,
            operation_name="getting resumable stream",
        )
    except Exception:
        logger.warning("No resumable stream available for %s", stream_id)
        return None
