"""Data access layer for threads, messages, models, settings, usage and customers.

Every function takes either the Supabase client or a ``Transaction`` as its
first argument. Mutations run through a ``Transaction`` register their undo
step with it.
"""

from datetime import datetime, timezone
from typing import Any

from src.db.models import (
    MESSAGES,
    MODELS,
    RPC_DECREMENT_USAGE,
    RPC_INCREMENT_USAGE,
    STATUS_READY,
    THREADS,
    USAGE,
    USAGE_KINDS,
    USER_CUSTOMERS,
    USER_SETTINGS,
)
from src.db.transaction import client_of, register_rollback


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _serialize(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v.isoformat() if isinstance(v, datetime) else v for k, v in data.items()}


async def _first(query) -> dict | None:
    result = await query.limit(1).execute()
    return result.data[0] if result.data else None


# --- Reads ---

async def get_thread_by_id(db, thread_id: str) -> dict | None:
    return await _first(client_of(db).table(THREADS).select("*").eq("id", thread_id))


async def get_message_by_id(db, message_id: str) -> dict | None:
    return await _first(client_of(db).table(MESSAGES).select("*").eq("id", message_id))


async def get_model_by_id(db, model_id: str) -> dict | None:
    return await _first(client_of(db).table(MODELS).select("*").eq("id", model_id).eq("is_enabled", True))


async def get_settings_by_user_id(db, user_id: str) -> dict | None:
    return await _first(client_of(db).table(USER_SETTINGS).select("*").eq("user_id", user_id))


async def get_usage_by_user_id(db, user_id: str) -> dict | None:
    return await _first(client_of(db).table(USAGE).select("*").eq("user_id", user_id))


async def get_user_customer_by_user_id(db, user_id: str) -> dict | None:
    return await _first(client_of(db).table(USER_CUSTOMERS).select("*").eq("user_id", user_id))


async def get_thread_message_history(db, thread_id: str) -> list[dict]:
    result = await (
        client_of(db).table(MESSAGES)
        .select("*")
        .eq("thread_id", thread_id)
        .order("created_at")
        .execute()
    )
    return result.data


async def list_models(db) -> list[dict]:
    result = await client_of(db).table(MODELS).select("*").eq("is_enabled", True).order("credits").execute()
    return result.data


async def list_threads_by_user(db, user_id: str, page: int = 1, per_page: int = 20) -> list[dict]:
    offset = (page - 1) * per_page
    result = await (
        client_of(db).table(THREADS)
        .select("*")
        .eq("user_id", user_id)
        .order("updated_at", desc=True)
        .range(offset, offset + per_page - 1)
        .execute()
    )
    return result.data


# --- Writes ---

async def create_thread(db, thread_id: str, user_id: str) -> dict:
    client = client_of(db)
    row = {"id": thread_id, "user_id": user_id, "status": STATUS_READY}
    result = await client.table(THREADS).insert(row).execute()

    async def undo():
        await client.table(THREADS).delete().eq("id", thread_id).execute()

    register_rollback(db, f"delete thread {thread_id}", undo)
    return result.data[0]


async def update_thread(db, thread_id: str, **fields: Any) -> dict | None:
    client = client_of(db)
    previous = await get_thread_by_id(client, thread_id)
    result = await client.table(THREADS).update(_serialize(fields)).eq("id", thread_id).execute()

    if previous:
        snapshot = {k: previous.get(k) for k in fields}

        async def undo():
            await client.table(THREADS).update(snapshot).eq("id", thread_id).execute()

        register_rollback(db, f"restore thread {thread_id}", undo)
    return result.data[0] if result.data else None


async def update_thread_title(db, thread_id: str, title: str) -> dict | None:
    result = await client_of(db).table(THREADS).update({"title": title}).eq("id", thread_id).execute()
    return result.data[0] if result.data else None


async def create_message(db, thread_id: str, user_id: str, message: dict) -> dict:
    client = client_of(db)
    row = {
        "id": message["id"],
        "thread_id": thread_id,
        "user_id": user_id,
        "role": message["role"],
        "parts": message["parts"],
    }
    result = await client.table(MESSAGES).insert(row).execute()

    async def undo():
        await client.table(MESSAGES).delete().eq("id", message["id"]).execute()

    register_rollback(db, f"delete message {message['id']}", undo)
    return result.data[0]


async def update_message(db, message_id: str, message: dict, updated_at: datetime | None = None) -> dict | None:
    client = client_of(db)
    previous = await get_message_by_id(client, message_id)
    changes = _serialize({"parts": message["parts"], "updated_at": updated_at or _now()})
    result = await client.table(MESSAGES).update(changes).eq("id", message_id).execute()

    if previous:
        snapshot = {"parts": previous.get("parts"), "updated_at": previous.get("updated_at")}

        async def undo():
            await client.table(MESSAGES).update(snapshot).eq("id", message_id).execute()

        register_rollback(db, f"restore message {message_id}", undo)
    return result.data[0] if result.data else None


async def delete_trailing_messages(db, thread_id: str, message_id: str, message_created_at: str) -> list[dict]:
    """Delete every message in the thread created after the given one."""
    client = client_of(db)
    result = await (
        client.table(MESSAGES)
        .delete()
        .eq("thread_id", thread_id)
        .gt("created_at", message_created_at)
        .neq("id", message_id)
        .execute()
    )
    deleted = result.data or []

    if deleted:
        async def undo():
            await client.table(MESSAGES).insert(deleted).execute()

        register_rollback(db, f"restore {len(deleted)} trailing messages", undo)
    return deleted


async def _adjust_usage(db, rpc: str, user_id: str, kind: str, amount: int) -> None:
    if kind not in USAGE_KINDS:
        raise ValueError(f"Unknown usage kind: {kind}")
    await client_of(db).rpc(rpc, {"p_user_id": user_id, "p_kind": kind, "p_amount": amount}).execute()


async def increment_usage(db, user_id: str, kind: str, amount: int) -> None:
    await _adjust_usage(db, RPC_INCREMENT_USAGE, user_id, kind, amount)


async def decrement_usage(db, user_id: str, kind: str, amount: int) -> None:
    await _adjust_usage(db, RPC_DECREMENT_USAGE, user_id, kind, amount)
