"""Supabase client lifecycle."""

import logging

from supabase import AsyncClient, acreate_client

from src.config.settings import get_settings

logger = logging.getLogger(__name__)

_client: AsyncClient | None = None


async def init_supabase() -> AsyncClient:
    global _client
    if _client is None:
        settings = get_settings()
        _client = await acreate_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
        logger.info("Supabase client initialised for %s", settings.SUPABASE_URL)
    return _client


def get_supabase() -> AsyncClient:
    if _client is None:
        raise RuntimeError("Supabase client is not initialised; call init_supabase() at startup")
    return _client


async def get_db() -> AsyncClient:
    """FastAPI dependency returning the shared client."""
    return get_supabase()
